"""Remote parsing and fork-topology detection.

``git remote -v`` lines are parsed into :class:`RemoteInfo` records; a pure
function then maps the set of remotes to a :data:`Topology`.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

_REMOTE_LINE = re.compile(r"^(?P<name>\S+)\s+(?P<url>\S+)\s+\((?P<kind>fetch|push)\)\s*$")
# Matches the trailing owner/repo of https, ssh:// and scp-style URLs
_OWNER_REPO = re.compile(r"[:/](?P<owner>[^/:]+)/(?P<repo>[^/]+?)(?:\.git)?/?$")


@dataclass(frozen=True)
class RemoteInfo:
    name: str
    url: str
    owner: Optional[str] = None
    repo: Optional[str] = None

    @property
    def slug(self) -> Optional[str]:
        """``owner/repo`` when the URL names a hosted repository."""
        if self.owner and self.repo:
            return f"{self.owner}/{self.repo}"
        return None


@dataclass(frozen=True)
class SameRepo:
    """Branch and pull request live in the same repository."""


@dataclass(frozen=True)
class Fork:
    """Pushed to a personal fork; the PR targets ``upstream``."""
    upstream: str
    origin_owner: str

    def head_ref(self, branch: str) -> str:
        return f"{self.origin_owner}:{branch}"


Topology = Union[SameRepo, Fork]


def parse_remote_url(name: str, url: str) -> RemoteInfo:
    match = _OWNER_REPO.search(url)
    if not match:
        return RemoteInfo(name=name, url=url)
    return RemoteInfo(name=name, url=url, owner=match.group("owner"), repo=match.group("repo"))


def parse_remotes(output: str) -> List[RemoteInfo]:
    """Parse ``git remote -v``, keeping one record per remote (fetch URL)."""
    remotes: List[RemoteInfo] = []
    seen = set()
    for line in output.splitlines():
        match = _REMOTE_LINE.match(line.strip())
        if not match or match.group("kind") != "fetch":
            continue
        name = match.group("name")
        if name in seen:
            continue
        seen.add(name)
        remotes.append(parse_remote_url(name, match.group("url")))
    return remotes


def detect_topology(
    remotes: Iterable[RemoteInfo],
    origin: str = "origin",
    upstream: str = "upstream",
) -> Topology:
    """Fork when an ``upstream`` repository and the ``origin`` owner are both known."""
    by_name = {remote.name: remote for remote in remotes}
    upstream_remote = by_name.get(upstream)
    origin_remote = by_name.get(origin)

    if upstream_remote and upstream_remote.slug and origin_remote and origin_remote.owner:
        return Fork(upstream=upstream_remote.slug, origin_owner=origin_remote.owner)
    return SameRepo()
