# =============================================================================
# Evidence Models — Output Schemas of the Evidence Tools
# =============================================================================
#
# Each Evidence Tool reduces a raw GitHub payload into one of these models.
# They double as the tool output schemas advertised to the model runtime,
# so field names ARE the wire contract:
#   - Fields copied verbatim from GitHub keep GitHub's snake_case names
#     (avatar_url, stargazers_count, ...)
#   - Derived aggregates use camelCase aliases (totalRepos, mergeRate, ...)
#
# DESIGN DECISION: Frozen models. An evidence record is produced once per
# tool call and then only read (serialised into the conversation).
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field, RootModel

# GitHub login rules: 1-39 chars, alphanumerics and hyphens,
# no leading/trailing hyphen. Also keeps usernames from altering URL paths.
USERNAME_PATTERN = r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,37}[A-Za-z0-9])?$"


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ToolInput(_Record):
    """Input shared by all six Evidence Tools."""

    username: str = Field(
        ...,
        min_length=1,
        max_length=39,
        pattern=USERNAME_PATTERN,
        description="GitHub username to inspect",
    )


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class GithubProfile(_Record):
    login: str
    id: int
    avatar_url: str
    html_url: str
    name: str | None = None
    company: str | None = None
    blog: str | None = None
    location: str | None = None
    bio: str | None = None
    public_repos: int
    followers: int
    following: int
    created_at: str
    updated_at: str


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class RepoSummary(_Record):
    name: str
    language: str | None = None
    pushed_at: str | None = None
    stargazers_count: int
    forks: int


class RepoList(RootModel[list[RepoSummary]]):
    """Most recently pushed repositories, newest first."""

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Languages
# ---------------------------------------------------------------------------


class LanguageShare(_Record):
    name: str
    count: int
    percentage: int


class LanguageStats(_Record):
    languages: dict[str, int]
    total_repos: int = Field(alias="totalRepos")
    top_languages: list[LanguageShare] = Field(alias="topLanguages")


# ---------------------------------------------------------------------------
# Pull Requests
# ---------------------------------------------------------------------------


class PullRequestRecord(_Record):
    title: str
    body: str | None = None
    state: str
    created_at: str
    merged_at: str | None = None
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    review_comments: int = 0
    commits: int = 0


class PullRequestStats(_Record):
    total_prs: int = Field(alias="totalPRs")
    recent_prs: list[PullRequestRecord] = Field(alias="recentPRs")
    average_pr_size: int = Field(alias="averagePRSize")
    merge_rate: int = Field(alias="mergeRate", ge=0, le=100)


# ---------------------------------------------------------------------------
# Commits
# ---------------------------------------------------------------------------


class CommitRecord(_Record):
    message: str
    date: str
    # Not available from the events feed; always 0.
    additions: int = 0
    deletions: int = 0


class CommitAnalysis(_Record):
    total_commits: int = Field(alias="totalCommits")
    commit_frequency: str = Field(alias="commitFrequency")
    average_commits_per_week: float = Field(alias="averageCommitsPerWeek")
    commit_message_quality: str = Field(alias="commitMessageQuality")
    recent_commits: list[CommitRecord] = Field(alias="recentCommits")


# ---------------------------------------------------------------------------
# Starred Repositories
# ---------------------------------------------------------------------------


class StarredRepo(_Record):
    name: str
    language: str | None = None
    description: str | None = None
    stargazers_count: int


class StarredSummary(_Record):
    total_starred: int = Field(alias="totalStarred")
    top_starred_languages: list[str] = Field(alias="topStarredLanguages")
    recent_stars: list[StarredRepo] = Field(alias="recentStars")
