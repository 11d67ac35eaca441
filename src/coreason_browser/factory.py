from coreason_browser.config import BrowserSandboxConfig
from coreason_browser.readiness import ReadinessGate, RetryPolicy
from coreason_browser.runtime import ContainerRuntime
from coreason_browser.runtimes.docker import DockerRuntime


class SandboxFactory:
    """
    Factory to create the collaborators of a browser sandbox from configuration.
    """

    @staticmethod
    def get_runtime(config: BrowserSandboxConfig) -> ContainerRuntime:
        """
        Returns the container runtime. The Docker connection is opened lazily.
        """
        return DockerRuntime()

    @staticmethod
    def get_gate(config: BrowserSandboxConfig) -> ReadinessGate:
        """
        Returns a readiness gate bounded by the configured start-up timeout.
        """
        policy = RetryPolicy(timeout=config.startup_timeout, interval=config.poll_interval)
        return ReadinessGate(policy=policy)
