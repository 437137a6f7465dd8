"""Git provider detection and link formatting.

Supports GitHub, GitLab (including self-hosted instances with "gitlab" in
the host name) and a generic fallback that produces no links.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel

from .models import Change, GitProvider, ProviderLinks, ProviderType
from .shell import git

GIT_URL_RE = re.compile(
    r"^(?:(?:https?|ssh|git)://(?:[^@/]+@)?([^/:]+)(?::\d+)?/|[^@]+@([^:]+):)"
    r"(.+)/([^/]+?)(?:\.git)?/?$"
)


class RemoteUrl(BaseModel):
    host: str
    owner: str
    repo: str


def parse_git_url(url: str) -> RemoteUrl | None:
    """Split a remote URL into host, owner and repository.

    Accepts HTTPS, SSH-scheme and scp-like forms. Owners may be nested
    groups (GitLab subgroups).

    Examples:
        "https://github.com/acme/tools.git" → github.com, acme, tools
        "git@gitlab.com:acme/sub/tools.git" → gitlab.com, acme/sub, tools
    """
    match = GIT_URL_RE.match(url.strip())
    if not match:
        return None
    host = match.group(1) or match.group(2)
    return RemoteUrl(host=host, owner=match.group(3), repo=match.group(4))


def infer_provider_type(url: str) -> ProviderType:
    """Guess the hosting provider from a URL."""
    lowered = url.lower()
    if "github.com" in lowered or "githubusercontent.com" in lowered:
        return "github"
    if "gitlab" in lowered:
        return "gitlab"
    return "generic"


def detect_provider(cwd: str | Path, base_url: str | None = None) -> GitProvider:
    """Determine the provider and web base URL of a repository.

    An explicit ``base_url`` wins. Otherwise the ``origin`` remote (or the
    first remote) is parsed. Anything unrecognized yields a generic provider
    without a base URL.
    """
    if base_url:
        base = base_url.rstrip("/")
        return GitProvider(type=infer_provider_type(base), base_url=base)

    remotes = git("remote", cwd=cwd, check=False).splitlines()
    if not remotes:
        return GitProvider(type="generic")
    remote = "origin" if "origin" in remotes else remotes[0]
    url = git("remote", "get-url", remote, cwd=cwd, check=False)

    parsed = parse_git_url(url) if url else None
    if parsed is None:
        return GitProvider(type="generic")

    provider_url = f"https://{parsed.host}/{parsed.owner}/{parsed.repo}"
    return GitProvider(type=infer_provider_type(provider_url), base_url=provider_url)


def format_commit_link(provider: GitProvider, sha: str) -> str | None:
    if not provider.base_url:
        return None
    if provider.type == "github":
        return f"{provider.base_url}/commit/{sha}"
    if provider.type == "gitlab":
        return f"{provider.base_url}/-/commit/{sha}"
    return None


def format_pr_link(provider: GitProvider, number: str) -> str | None:
    if not provider.base_url:
        return None
    if provider.type == "github":
        return f"{provider.base_url}/pull/{number}"
    if provider.type == "gitlab":
        return f"{provider.base_url}/-/merge_requests/{number}"
    return None


def format_issue_link(provider: GitProvider, number: str) -> str | None:
    if not provider.base_url:
        return None
    if provider.type == "github":
        return f"{provider.base_url}/issues/{number}"
    if provider.type == "gitlab":
        return f"{provider.base_url}/-/issues/{number}"
    return None


def enhance_change(change: Change, provider: GitProvider) -> Change:
    """Return a copy of ``change`` with provider links attached.

    Each reference gets its URL, and ``provider_links`` collects the commit,
    pull request and issue URLs. Empty PR and issue lists are left as None.
    The input change is not modified.
    """
    pr_links: list[str] = []
    issue_links: list[str] = []
    refs = []
    for ref in change.refs:
        if ref.type == "pr":
            link = format_pr_link(provider, ref.id)
            if link:
                pr_links.append(link)
        else:
            link = format_issue_link(provider, ref.id)
            if link:
                issue_links.append(link)
        refs.append(ref.model_copy(update={"url": link}) if link else ref)

    links = ProviderLinks(
        commit=format_commit_link(provider, change.sha),
        pr=pr_links or None,
        issues=issue_links or None,
    )
    return change.model_copy(update={"refs": refs, "provider_links": links})
