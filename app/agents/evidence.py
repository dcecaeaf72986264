# =============================================================================
# Evidence Tools — GitHub Activity Reducers
# =============================================================================
#
# Six independent tools, each turning one slice of a developer's public
# GitHub activity into a compact evidence record the model can reason over:
#
#   fetch_profile         → GithubProfile      (GET /users/{u})
#   fetch_repos           → RepoList           (15 most recently pushed)
#   fetch_language_stats  → LanguageStats      (100 repos, per-language %)
#   fetch_pull_requests   → PullRequestStats   (authored PRs, merge rate)
#   fetch_commit_analysis → CommitAnalysis     (push events, 30-day window)
#   fetch_starred_repos   → StarredSummary     (20 most recent stars)
#
# DESIGN DECISION: Fetch and reduce are separate functions.
# Each async `fetch_*` does I/O through GitHubClient and hands the raw
# payload to a pure `summarise_*` function. The arithmetic (percentages,
# merge rate, weekly averages, quality heuristics) is unit-tested without
# any HTTP at all.
#
# DESIGN DECISION: JavaScript-style rounding.
# Percentages and averages use round-half-up (floor(x + 0.5)), not
# Python's round-half-even. 2.5% → 3%, not 2%.
#
# FAILURE MODEL:
# Every tool lets UpstreamError propagate — the orchestrator relays it to
# the model as a tool error. The one exception is the PR tool, which
# tolerates per-repository failures (that repository contributes nothing).
# =============================================================================

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from app.config import settings
from app.models.evidence import (
    CommitAnalysis,
    CommitRecord,
    GithubProfile,
    LanguageShare,
    LanguageStats,
    PullRequestRecord,
    PullRequestStats,
    RepoList,
    RepoSummary,
    StarredRepo,
    StarredSummary,
)
from app.services.github import GitHubClient, UpstreamError

logger = logging.getLogger(__name__)

# Page sizes requested from GitHub
REPO_LIST_SIZE = 15
LANGUAGE_SAMPLE_SIZE = 100
PR_REPO_SAMPLE_SIZE = 10
PR_REPOS_INSPECTED = 5
PRS_PER_REPO_FETCHED = 10
PRS_PER_REPO_KEPT = 3
RECENT_PRS_KEPT = 10
EVENT_SAMPLE_SIZE = 100
RECENT_COMMITS_KEPT = 10
STARRED_SAMPLE_SIZE = 20
RECENT_STARS_KEPT = 10
TOP_N = 5

COMMIT_WINDOW = timedelta(days=30)
WEEKS_PER_MONTH = 4.3


def round_half_up(value: float) -> int:
    """Round like JavaScript's Math.round (halves go up)."""
    return math.floor(value + 0.5)


def _top_counts(counts: dict[str, int], n: int = TOP_N) -> list[tuple[str, int]]:
    # sorted() is stable: equal counts keep first-seen order
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)[:n]


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


# ---------------------------------------------------------------------------
# 1. Profile
# ---------------------------------------------------------------------------


async def fetch_profile(github: GitHubClient, username: str) -> GithubProfile:
    """Public profile: identity, bio, follower counts, timestamps."""
    logger.info("Fetching profile for %s", username)
    payload = await github.get_user(username)
    return GithubProfile.model_validate(payload)


# ---------------------------------------------------------------------------
# 2. Repositories
# ---------------------------------------------------------------------------


async def fetch_repos(github: GitHubClient, username: str) -> RepoList:
    """Most recently pushed repositories, upstream order preserved."""
    logger.info("Fetching repos for %s", username)
    repos = await github.list_user_repos(
        username, per_page=REPO_LIST_SIZE, sort="pushed",
    )
    return RepoList([RepoSummary.model_validate(repo) for repo in repos])


# ---------------------------------------------------------------------------
# 3. Language Statistics
# ---------------------------------------------------------------------------


async def fetch_language_stats(
    github: GitHubClient, username: str,
) -> LanguageStats:
    """Per-language repository counts and top-5 share."""
    logger.info("Analyzing language stats for %s", username)
    repos = await github.list_user_repos(
        username, per_page=LANGUAGE_SAMPLE_SIZE, repo_type="all",
    )
    return summarise_languages(repos)


def summarise_languages(repos: Iterable[dict[str, Any]]) -> LanguageStats:
    """
    Count repositories per primary language.

    Repositories without a language are ignored entirely — they count
    towards neither a language nor `totalRepos`, so percentages are
    shares of repositories that HAVE a language.
    """
    languages: dict[str, int] = {}
    for repo in repos:
        language = repo.get("language")
        if language:
            languages[language] = languages.get(language, 0) + 1

    total_repos = sum(languages.values())
    top_languages = [
        LanguageShare(
            name=name,
            count=count,
            percentage=round_half_up((count / total_repos) * 100),
        )
        for name, count in _top_counts(languages)
    ]

    return LanguageStats(
        languages=languages,
        total_repos=total_repos,
        top_languages=top_languages,
    )


# ---------------------------------------------------------------------------
# 4. Pull Requests
# ---------------------------------------------------------------------------


async def fetch_pull_requests(
    github: GitHubClient, username: str,
) -> PullRequestStats:
    """
    Pull requests authored by the user in their recently updated repos.

    Only the repository listing is fatal. A repository whose PR listing
    fails is logged and skipped, as is a failed size lookup.
    """
    logger.info("Fetching PRs for %s", username)
    repos = await github.list_user_repos(
        username, per_page=PR_REPO_SAMPLE_SIZE, sort="updated",
    )

    pulls_by_repo: list[tuple[str, list[dict[str, Any]]]] = []
    for repo in repos[:PR_REPOS_INSPECTED]:
        full_name = repo.get("full_name") or f"{username}/{repo['name']}"
        try:
            pulls = await github.list_pulls(
                full_name, per_page=PRS_PER_REPO_FETCHED,
            )
        except UpstreamError as e:
            logger.warning("Skipping PRs for %s: %s", full_name, e)
            continue
        pulls_by_repo.append((full_name, pulls))

    retained, total_prs, merged_prs = select_authored_pulls(
        username, pulls_by_repo,
    )
    recent = sorted(
        retained,
        key=lambda item: _parse_timestamp(item[1]["created_at"]),
        reverse=True,
    )[:RECENT_PRS_KEPT]

    if settings.github_pr_details:
        recent = [
            (full_name, await _with_pull_size(github, full_name, pull))
            for full_name, pull in recent
        ]

    return summarise_pull_requests(
        [pull for _, pull in recent], total_prs, merged_prs,
    )


def select_authored_pulls(
    username: str,
    pulls_by_repo: Iterable[tuple[str, Sequence[dict[str, Any]]]],
) -> tuple[list[tuple[str, dict[str, Any]]], int, int]:
    """
    Filter PR listings down to the ones the user opened.

    Returns:
        (retained, total, merged) where `retained` holds at most
        PRS_PER_REPO_KEPT (repo, pr) pairs per repository, while `total`
        and `merged` count EVERY authored PR in every repository seen.
    """
    login = username.casefold()
    retained: list[tuple[str, dict[str, Any]]] = []
    total = 0
    merged = 0

    for full_name, pulls in pulls_by_repo:
        authored = [
            pull for pull in pulls
            if ((pull.get("user") or {}).get("login") or "").casefold() == login
        ]
        retained.extend(
            (full_name, pull) for pull in authored[:PRS_PER_REPO_KEPT]
        )
        total += len(authored)
        merged += sum(1 for pull in authored if pull.get("merged_at"))

    return retained, total, merged


def summarise_pull_requests(
    recent_pulls: Sequence[dict[str, Any]],
    total_prs: int,
    merged_prs: int,
) -> PullRequestStats:
    """Reduce the retained PRs plus running counts into PullRequestStats."""
    records = [
        PullRequestRecord(
            title=pull["title"],
            body=pull.get("body"),
            state=pull["state"],
            created_at=pull["created_at"],
            merged_at=pull.get("merged_at"),
            additions=pull.get("additions") or 0,
            deletions=pull.get("deletions") or 0,
            changed_files=pull.get("changed_files") or 0,
            review_comments=pull.get("review_comments") or 0,
            commits=pull.get("commits") or 0,
        )
        for pull in recent_pulls
    ]

    average_pr_size = (
        round_half_up(
            sum(r.additions + r.deletions for r in records) / len(records)
        )
        if records
        else 0
    )
    merge_rate = (
        round_half_up((merged_prs / total_prs) * 100) if total_prs > 0 else 0
    )

    return PullRequestStats(
        total_prs=total_prs,
        recent_prs=records,
        average_pr_size=average_pr_size,
        merge_rate=merge_rate,
    )


async def _with_pull_size(
    github: GitHubClient, full_name: str, pull: dict[str, Any],
) -> dict[str, Any]:
    """Merge size fields from the single-PR endpoint into a list entry."""
    if "additions" in pull or "number" not in pull:
        return pull
    try:
        detail = await github.get_pull(full_name, pull["number"])
    except UpstreamError as e:
        logger.warning(
            "No size data for %s#%s: %s", full_name, pull["number"], e,
        )
        return pull
    return {**pull, **detail}


# ---------------------------------------------------------------------------
# 5. Commit Analysis
# ---------------------------------------------------------------------------


async def fetch_commit_analysis(
    github: GitHubClient, username: str,
) -> CommitAnalysis:
    """Commit cadence and message quality from recent push events."""
    logger.info("Analyzing commits for %s", username)
    events = await github.list_events(username, per_page=EVENT_SAMPLE_SIZE)
    return summarise_commits(events, now=datetime.now(UTC))


def summarise_commits(
    events: Iterable[dict[str, Any]],
    now: datetime,
) -> CommitAnalysis:
    """
    Derive commit frequency and message quality from an events feed.

    Commits inherit their push event's timestamp (the events feed carries
    no per-commit dates). "Recent" means strictly after `now - 30 days`;
    a 30-day window is treated as 4.3 weeks.
    """
    commits = [
        CommitRecord(message=commit.get("message") or "", date=event["created_at"])
        for event in events
        if event.get("type") == "PushEvent"
        for commit in (event.get("payload") or {}).get("commits") or []
    ]

    cutoff = now - COMMIT_WINDOW
    recent = [c for c in commits if _parse_timestamp(c.date) > cutoff]

    average_per_week = round_half_up((len(recent) / WEEKS_PER_MONTH) * 10) / 10

    good = sum(1 for c in recent if is_descriptive_message(c.message))
    quality_score = (
        round_half_up((good / len(recent)) * 100) if recent else 0
    )

    return CommitAnalysis(
        total_commits=len(commits),
        commit_frequency=commit_frequency_label(average_per_week),
        average_commits_per_week=average_per_week,
        commit_message_quality=message_quality_label(quality_score),
        recent_commits=recent[:RECENT_COMMITS_KEPT],
    )


def is_descriptive_message(message: str) -> bool:
    """Longer than 10 chars and not a bare "fix"/"update" style message."""
    lowered = message.lower()
    return len(message) > 10 and "fix" not in lowered and "update" not in lowered


def message_quality_label(score: int) -> str:
    if score > 70:
        return "Excellent"
    if score > 50:
        return "Good"
    if score > 30:
        return "Fair"
    return "Poor"


def commit_frequency_label(average_per_week: float) -> str:
    if average_per_week > 10:
        return "Very High"
    if average_per_week > 5:
        return "High"
    if average_per_week > 2:
        return "Medium"
    return "Low"


# ---------------------------------------------------------------------------
# 6. Starred Repositories
# ---------------------------------------------------------------------------


async def fetch_starred_repos(
    github: GitHubClient, username: str,
) -> StarredSummary:
    """Recently starred repositories — interests vs. own work."""
    logger.info("Fetching starred repos for %s", username)
    starred = await github.list_starred(
        username, per_page=STARRED_SAMPLE_SIZE, sort="created",
    )
    return summarise_starred(starred)


def summarise_starred(starred: Sequence[dict[str, Any]]) -> StarredSummary:
    """
    Summarise a starred-repos page.

    Language frequencies are taken over the detailed recent stars only,
    the same slice the model sees.
    """
    recent = starred[:RECENT_STARS_KEPT]
    language_counts: dict[str, int] = {}
    for repo in recent:
        language = repo.get("language")
        if language:
            language_counts[language] = language_counts.get(language, 0) + 1

    return StarredSummary(
        total_starred=len(starred),
        top_starred_languages=[name for name, _ in _top_counts(language_counts)],
        recent_stars=[StarredRepo.model_validate(repo) for repo in recent],
    )
