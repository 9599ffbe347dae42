class ProviderError(RuntimeError):
    """A remote AI provider call failed; `status` is the HTTP status when known."""

    def __init__(self, message: str, *, provider: str = "", status: int | None = None):
        super().__init__(message)
        self.provider = str(provider or "")
        self.status = status


class ProviderTimeoutError(ProviderError):
    def __init__(self, provider: str, timeout_sec: float):
        super().__init__(f"{provider} request timeout after {timeout_sec:.1f}s", provider=provider)
        self.timeout_sec = timeout_sec


class NoHealthyProvidersError(RuntimeError):
    def __init__(self):
        super().__init__("no healthy providers")


class AllProvidersFailedError(RuntimeError):
    def __init__(self, errors: dict[str, Exception]):
        self.errors = dict(errors or {})
        detail = " | ".join(f"{pid}: {exc}" for pid, exc in self.errors.items())
        super().__init__(f"All providers failed. {detail}".strip())


class ReportGenerationError(RuntimeError):
    pass
