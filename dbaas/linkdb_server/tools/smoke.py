"""
Smoke test CLI for a running LinkDB server.

Replays the API dependency scenarios against the /data/* endpoints and
reports every named check:
- Normal flow: add user, category, post, comment and tag with valid references
- Failure flow: adds with references to missing entities are rejected
- Cascade deletion: deleting a post, a category or a user removes dependents

Usage:
    linkdb-smoke --base-url http://localhost:3000
    linkdb-smoke --suffix _run2     # fresh ids against a non-empty server

Invariants:
    - Exit code is 0 only if every check passed
    - Checks run in order; a failed check does not stop the run
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3000"


@dataclass
class CheckResult:
    """Outcome of one named check."""

    group: str
    name: str
    passed: bool


@dataclass
class SmokeReport:
    """All check results of a run."""

    checks: List[CheckResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks)

    @property
    def failed(self) -> List[CheckResult]:
        return [c for c in self.checks if not c.passed]

    def summary(self) -> str:
        return f"{len(self.checks) - len(self.failed)}/{len(self.checks)} checks passed"


def response_json(response: httpx.Response) -> Dict[str, Any]:
    """Decoded JSON object body, or {} if the body is not a JSON object."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def succeeded(response: httpx.Response) -> bool:
    return response.status_code == 200


def rejected(response: httpx.Response) -> bool:
    """Whether an add response signals a rejection."""
    return response.status_code != 200 or response_json(response).get("success") is False


class SmokeRunner:
    """Runs the smoke scenarios through an httpx client.

    Args:
        client: AsyncClient with base_url pointing at the server
        suffix: Appended to every entity id, so repeated runs do not collide

    Example:
        >>> async with httpx.AsyncClient(base_url="http://localhost:3000") as client:
        ...     report = await SmokeRunner(client).run()
        >>> report.passed
        True
    """

    def __init__(self, client: httpx.AsyncClient, suffix: str = "") -> None:
        self.client = client
        self.suffix = suffix
        self.report = SmokeReport()
        self._group = ""

    def _id(self, base: str) -> str:
        return f"{base}{self.suffix}"

    def _entity(self, type_name: str, base_id: str, **fields: str) -> Dict[str, str]:
        """Build a payload; *_id reference values get the run suffix too."""
        payload = {"type": type_name, "id": self._id(base_id)}
        for name, value in fields.items():
            payload[name] = self._id(value) if name.endswith("_id") else value
        return payload

    async def add_data(self, data: Dict[str, Any]) -> httpx.Response:
        return await self.client.post("/data/add", json=data)

    async def delete_data(self, type_name: str, base_id: str) -> httpx.Response:
        return await self.client.post(
            "/data/delete", json={"type": type_name, "id": self._id(base_id)}
        )

    async def display_data(self, type_name: str, base_id: str) -> httpx.Response:
        return await self.client.get(
            "/data/display", params={"type": type_name, "id": self._id(base_id)}
        )

    def check(
        self,
        name: str,
        response: httpx.Response,
        predicate: Callable[[httpx.Response], bool],
    ) -> bool:
        passed = bool(predicate(response))
        self.report.checks.append(CheckResult(self._group, name, passed))
        if not passed:
            logger.info(
                f"Check failed: {name}",
                extra={"status": response.status_code, "body": response.text[:500]},
            )
        return passed

    async def check_exists(self, type_name: str, base_id: str, should_exist: bool = True) -> bool:
        response = await self.display_data(type_name, base_id)
        state = "exists" if should_exist else "does not exist"
        return self.check(
            f"{type_name}:{self._id(base_id)} {state}",
            response,
            lambda r: r.status_code == 200 and response_json(r).get("exists") is should_exist,
        )

    async def run(self) -> SmokeReport:
        """Run every group in order."""
        logger.info("=== Starting API Dependency Tests ===")
        await self.normal_flow()
        await self.failure_flow()
        await self.cascade_flow()
        logger.info(f"=== API Dependency Tests Completed: {self.report.summary()} ===")
        return self.report

    async def normal_flow(self) -> None:
        self._group = "Normal Flow - Add data with valid references"
        res = await self.add_data(
            self._entity("user", "user_001", name="홍길동", email="hong@example.com")
        )
        self.check("User added successfully", res, succeeded)
        await self.check_exists("user", "user_001")

        res = await self.add_data(
            self._entity("category", "cat_001", name="기술", description="기술 관련 카테고리")
        )
        self.check("Category added successfully", res, succeeded)
        await self.check_exists("category", "cat_001")

        res = await self.add_data(
            self._entity(
                "post",
                "post_001",
                title="k6 테스트 가이드",
                user_id="user_001",
                category_id="cat_001",
                content="k6로 API 테스트하는 방법...",
            )
        )
        self.check("Post added successfully (with valid references)", res, succeeded)
        await self.check_exists("post", "post_001")

        res = await self.add_data(
            self._entity(
                "comment",
                "comment_001",
                post_id="post_001",
                user_id="user_001",
                content="유용한 정보 감사합니다!",
            )
        )
        self.check("Comment added successfully (with valid references)", res, succeeded)
        await self.check_exists("comment", "comment_001")

        res = await self.add_data(self._entity("tag", "tag_001", post_id="post_001", name="테스팅"))
        self.check("Tag added successfully (with valid references)", res, succeeded)
        await self.check_exists("tag", "tag_001")

    async def failure_flow(self) -> None:
        self._group = "Failure Flow - Add data with invalid references"

        res = await self.add_data(
            self._entity(
                "post",
                "post_invalid_1",
                title="잘못된 Post",
                user_id="user_999",
                category_id="cat_001",
                content="이 Post는 추가되면 안됨",
            )
        )
        self.check("Post with invalid user_id should fail", res, rejected)
        await self.check_exists("post", "post_invalid_1", False)

        res = await self.add_data(
            self._entity(
                "post",
                "post_invalid_2",
                title="잘못된 Post 2",
                user_id="user_001",
                category_id="cat_999",
                content="이 Post는 추가되면 안됨",
            )
        )
        self.check("Post with invalid category_id should fail", res, rejected)
        await self.check_exists("post", "post_invalid_2", False)

        res = await self.add_data(
            self._entity(
                "comment",
                "comment_invalid_1",
                post_id="post_999",
                user_id="user_001",
                content="이 Comment는 추가되면 안됨",
            )
        )
        self.check("Comment with invalid post_id should fail", res, rejected)
        await self.check_exists("comment", "comment_invalid_1", False)

        res = await self.add_data(
            self._entity("tag", "tag_invalid_1", post_id="post_999", name="잘못된태그")
        )
        self.check("Tag with invalid post_id should fail", res, rejected)
        await self.check_exists("tag", "tag_invalid_1", False)

    async def cascade_flow(self) -> None:
        self._group = "Cascade Deletion - Delete parent data and verify children are deleted"
        await self.add_data(
            self._entity("user", "user_002", name="김철수", email="kim@example.com")
        )
        await self.add_data(
            self._entity("category", "cat_002", name="스포츠", description="스포츠 카테고리")
        )
        await self.add_data(
            self._entity(
                "post",
                "post_002",
                title="축구 이야기",
                user_id="user_002",
                category_id="cat_002",
                content="축구에 대한 글",
            )
        )
        await self.add_data(
            self._entity(
                "comment",
                "comment_002",
                post_id="post_002",
                user_id="user_002",
                content="좋은 글이네요",
            )
        )
        await self.add_data(self._entity("tag", "tag_002", post_id="post_002", name="축구"))

        # post -> comments and tags
        res = await self.delete_data("post", "post_002")
        self.check("Post deleted successfully", res, succeeded)
        await self.check_exists("post", "post_002", False)
        await self.check_exists("comment", "comment_002", False)
        await self.check_exists("tag", "tag_002", False)
        await self.check_exists("user", "user_002", True)

        await self.add_data(
            self._entity(
                "post",
                "post_003",
                title="또 다른 기술글",
                user_id="user_001",
                category_id="cat_001",
                content="기술 관련 내용",
            )
        )

        # category -> posts -> their comments and tags
        res = await self.delete_data("category", "cat_001")
        self.check("Category deleted successfully", res, succeeded)
        await self.check_exists("category", "cat_001", False)
        await self.check_exists("post", "post_001", False)
        await self.check_exists("post", "post_003", False)
        await self.check_exists("comment", "comment_001", False)
        await self.check_exists("tag", "tag_001", False)

        await self.add_data(
            self._entity("user", "user_003", name="이영희", email="lee@example.com")
        )
        await self.add_data(
            self._entity("category", "cat_003", name="음악", description="음악 카테고리")
        )
        await self.add_data(
            self._entity(
                "post",
                "post_004",
                title="음악 추천",
                user_id="user_003",
                category_id="cat_003",
                content="좋은 음악들",
            )
        )
        await self.add_data(
            self._entity(
                "comment",
                "comment_003",
                post_id="post_004",
                user_id="user_003",
                content="멋진 추천이네요",
            )
        )

        # user -> posts and comments
        res = await self.delete_data("user", "user_003")
        self.check("User deleted successfully", res, succeeded)
        await self.check_exists("user", "user_003", False)
        await self.check_exists("post", "post_004", False)
        await self.check_exists("comment", "comment_003", False)


async def run_smoke(base_url: str, suffix: str = "", timeout: float = 10.0) -> SmokeReport:
    """Run the smoke scenarios against base_url."""
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:
        return await SmokeRunner(client, suffix=suffix).run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point for the smoke test."""
    parser = argparse.ArgumentParser(description="LinkDB API smoke test")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help="Server URL")
    parser.add_argument("--suffix", default="", help="Suffix appended to every entity id")
    parser.add_argument("--timeout", type=float, default=10.0, help="Request timeout (seconds)")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log progress and failed check responses"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(message)s",
    )

    try:
        report = asyncio.run(run_smoke(args.base_url, args.suffix, args.timeout))
    except httpx.HTTPError as e:
        print(f"Error: cannot reach {args.base_url}: {e}", file=sys.stderr)
        return 2

    current_group = None
    for check in report.checks:
        if check.group != current_group:
            current_group = check.group
            print(f"\n{current_group}")
        print(f"  {'✓' if check.passed else '✗'} {check.name}")

    print(f"\n{report.summary()}")
    return 0 if report.passed else 1


if __name__ == "__main__":
    sys.exit(main())
