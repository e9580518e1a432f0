from __future__ import annotations


class IndexManagerError(Exception):
    pass


class ConfigurationError(IndexManagerError):
    pass


# Name used by the config loader and the CLI.
ConfigError = ConfigurationError


class InvalidGranularity(ConfigurationError):
    def __init__(self, value: object) -> None:
        super().__init__(
            f"Unknown time granularity {value!r}; expected one of hour, day, week, month, year"
        )
        self.value = value


class DiscoveryError(IndexManagerError):
    pass


class SliceDispatchError(IndexManagerError):
    pass


class CollaboratorError(IndexManagerError):
    pass


class PartitionBuildError(IndexManagerError):
    """
    A single partition failed to build. Never propagates past the scheduler;
    it is recorded in the build report and the key is retried on the next run.
    """

    def __init__(self, key: str, cause: BaseException | str) -> None:
        self.key = key
        self.cause = cause
        super().__init__(f"partition {key}: {cause}")
