"""Configuration models describing reorg settings."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReorgBaseModel(BaseModel):
    """Shared configuration for reorg settings models."""

    model_config = ConfigDict(extra="forbid")


class LLMSettings(ReorgBaseModel):
    """Language-model connection options.

    Attributes:
        provider: Backend identifier (`openai`, `anthropic`, or any DSPy/LiteLLM provider).
        model: Model name to target when issuing requests.
        temperature: Sampling temperature applied when no conversation override exists.
        max_tokens: Maximum number of tokens in responses.
        api_key: Optional credential for hosted providers.
        api_base_url: Optional base URL for self-hosted or proxy endpoints.
        timeout_seconds: Per-request timeout enforced by the provider.
    """

    provider: str = "openai"
    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 1_000
    api_key: Optional[str] = None
    api_base_url: Optional[str] = None
    timeout_seconds: float = 90.0


class OrganizationOptions(ReorgBaseModel):
    """Settings applied to negotiated suggestions before they are handed off.

    Attributes:
        confidence_threshold: Minimum confidence a suggestion needs to survive filtering.
        preserve_original_names: Keep original filenames while honouring suggested folders.
        create_backups: Signal to the execution layer that backups are expected.
    """

    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    preserve_original_names: bool = False
    create_backups: bool = True


class ScanningOptions(ReorgBaseModel):
    """Options governing directory discovery.

    Attributes:
        recursive: Whether to descend into subdirectories.
        include_hidden: Whether dot-files should be included.
        follow_symlinks: Whether to traverse symbolic links.
        max_depth: Maximum directory depth when recursing.
        exclude_patterns: Glob patterns removed from the scan.
        include_patterns: Optional glob patterns a file must match to be kept.
    """

    recursive: bool = False
    include_hidden: bool = False
    follow_symlinks: bool = False
    max_depth: int = 5
    exclude_patterns: List[str] = Field(
        default_factory=lambda: [
            ".DS_Store",
            "Thumbs.db",
            "*.tmp",
            "*.temp",
            ".git/**",
            "node_modules/**",
        ]
    )
    include_patterns: List[str] = Field(default_factory=list)


class ConversationSettings(ReorgBaseModel):
    """Limits applied to the organization conversation.

    Attributes:
        max_turns: Maximum model round-trips per negotiation.
        context_size_budget: Character budget for retained message history.
        temperature: Sampling temperature used during the negotiation.
        max_attempts: Orchestrator attempts before giving up.
        backoff_seconds: Base delay for exponential backoff between retries.
    """

    max_turns: int = Field(default=10, ge=1)
    context_size_budget: int = Field(default=15_000, ge=1)
    temperature: float = 0.4
    max_attempts: int = Field(default=5, ge=1)
    backoff_seconds: float = Field(default=0.5, ge=0.0)


class CacheSettings(ReorgBaseModel):
    """Persisted cache configuration.

    Attributes:
        enabled: Whether cached suggestions may short-circuit the model.
        directory: Root directory for persisted cache namespaces.
        suggestion_ttl_minutes: Lifetime of cached suggestion lists.
        pattern_ttl_minutes: Lifetime of cached pattern hints.
        project_ttl_minutes: Lifetime of cached project groups.
    """

    enabled: bool = True
    directory: str = "~/.reorg/cache"
    suggestion_ttl_minutes: float = Field(default=10, gt=0)
    pattern_ttl_minutes: float = Field(default=10, gt=0)
    project_ttl_minutes: float = Field(default=30, gt=0)


class LoggingSettings(ReorgBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"


class CLIOptions(ReorgBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
        preview_limit: Number of suggestions shown per review round.
    """

    quiet_default: bool = False
    summary_default: bool = False
    preview_limit: int = Field(default=10, ge=1)


class ReorgConfig(ReorgBaseModel):
    """Top-level configuration struct for reorg.

    Attributes:
        llm: Language model settings.
        organization: Suggestion post-processing settings.
        scanning: Directory discovery settings.
        conversation: Negotiation limits.
        cache: Cache configuration.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    llm: LLMSettings = Field(default_factory=LLMSettings)
    organization: OrganizationOptions = Field(default_factory=OrganizationOptions)
    scanning: ScanningOptions = Field(default_factory=ScanningOptions)
    conversation: ConversationSettings = Field(default_factory=ConversationSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "ReorgBaseModel",
    "LLMSettings",
    "OrganizationOptions",
    "ScanningOptions",
    "ConversationSettings",
    "CacheSettings",
    "LoggingSettings",
    "CLIOptions",
    "ReorgConfig",
]
