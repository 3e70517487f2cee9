"""Execution pipeline for service restarts.

- **command**: Remote call protocols (``CommandExecutor``, ``SandboxController``)
- **sandbox_api**: Provider HTTP client implementing both protocols
- **lifecycle**: Sandbox state queries and ``ensure_started``
- **restart**: Single (repository, service) restart, never raises
- **orchestrator**: Fan-out over repositories x services with fault isolation
- **summary**: Pure reduction of results into counts
- **facade**: Entry points composing the above
"""
