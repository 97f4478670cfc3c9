"""Hook forwarding setup for the agent.

Installs a small shell script that forwards each hook payload to the local
hook endpoint, and registers it for the hook events the detector uses in
the agent's settings.json. Existing hooks in that file are preserved.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from termsense.models.config import DEFAULT_HOOKS_PORT

logger = logging.getLogger(__name__)

REQUIRED_HOOKS = ["PreToolUse", "PostToolUse", "Stop", "UserPromptSubmit", "PermissionRequest"]

# Hooks that fire per tool and need a catch-all matcher
_TOOL_HOOKS = {"PreToolUse", "PostToolUse", "PermissionRequest"}

SCRIPT_MARKER = "termsense-hook"

SCRIPT_TEMPLATE = """#!/bin/bash
# {marker}: forwards agent hook events (JSON on stdin) to termsense

curl -s -X POST "http://127.0.0.1:{port}/hook" \\
  -H "Content-Type: application/json" \\
  -d @- >/dev/null 2>&1 || true

# Never block the agent
exit 0
"""


@dataclass
class HooksStatus:
    """Installation status of the hook forwarding."""

    is_configured: bool
    has_script: bool
    has_settings: bool
    missing_hooks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "is_configured": self.is_configured,
            "has_script": self.has_script,
            "has_settings": self.has_settings,
            "missing_hooks": self.missing_hooks,
        }


class HooksSetupService:
    """Installs and removes hook forwarding for the agent."""

    def __init__(
        self,
        script_path: str | Path,
        settings_path: str | Path,
        port: int = DEFAULT_HOOKS_PORT,
    ):
        """Initialize the service.

        Args:
            script_path: Where to install the forwarding script.
            settings_path: The agent's settings.json.
            port: Port of the local hook endpoint.
        """
        self.script_path = Path(script_path).expanduser()
        self.settings_path = Path(settings_path).expanduser()
        self.port = port

    def check_status(self) -> HooksStatus:
        has_script = self.script_path.exists()
        has_settings, missing = self._check_settings()
        return HooksStatus(
            is_configured=has_script and has_settings and not missing,
            has_script=has_script,
            has_settings=has_settings,
            missing_hooks=missing,
        )

    def install_script(self) -> Path:
        """Write the forwarding script and make it executable."""
        self.script_path.parent.mkdir(parents=True, exist_ok=True)
        self.script_path.write_text(SCRIPT_TEMPLATE.format(marker=SCRIPT_MARKER, port=self.port))
        self.script_path.chmod(0o755)
        logger.info(f"[HooksSetup] Installed hook script: {self.script_path}")
        return self.script_path

    def add_hooks_to_settings(self) -> None:
        """Register the script for every required hook event.

        Idempotent: hook events that already reference the script are left alone.
        """
        settings = self._read_settings()
        hooks = settings.setdefault("hooks", {})

        command = {"type": "command", "command": str(self.script_path)}
        for name in REQUIRED_HOOKS:
            configs = hooks.get(name) or []
            if not self._has_our_hook(configs):
                configs.append({"matcher": "*" if name in _TOOL_HOOKS else "", "hooks": [command]})
                hooks[name] = configs

        self._write_settings(settings)
        logger.info(f"[HooksSetup] Updated agent settings: {self.settings_path}")

    def setup_all(self) -> tuple[bool, str | None]:
        """Install the script and register it.

        Returns:
            (success, error message)
        """
        try:
            self.install_script()
            self.add_hooks_to_settings()
            return True, None
        except (OSError, ValueError) as e:
            logger.error(f"[HooksSetup] Setup failed: {e}")
            return False, str(e)

    def remove_hooks_from_settings(self) -> bool:
        """Remove our hook entries, dropping hook events left empty.

        Returns:
            True if the settings file was rewritten.
        """
        if not self.settings_path.exists():
            return False

        try:
            settings = self._read_settings()
        except ValueError as e:
            logger.error(f"[HooksSetup] Failed to remove hooks: {e}")
            return False

        hooks = settings.get("hooks")
        if not isinstance(hooks, dict):
            return False

        for name in list(hooks):
            configs = hooks[name] or []
            remaining = [c for c in configs if not self._is_our_config(c)]
            if remaining:
                hooks[name] = remaining
            else:
                del hooks[name]

        if not hooks:
            del settings["hooks"]

        self._write_settings(settings)
        logger.info("[HooksSetup] Removed hooks from agent settings")
        return True

    def _check_settings(self) -> tuple[bool, list[str]]:
        if not self.settings_path.exists():
            return False, list(REQUIRED_HOOKS)
        try:
            settings = self._read_settings()
        except ValueError:
            return False, list(REQUIRED_HOOKS)

        hooks = settings.get("hooks")
        if not isinstance(hooks, dict):
            return True, list(REQUIRED_HOOKS)

        missing = [name for name in REQUIRED_HOOKS if not self._has_our_hook(hooks.get(name) or [])]
        return True, missing

    def _read_settings(self) -> dict[str, Any]:
        """Read settings.json; a missing file is an empty mapping.

        Raises:
            ValueError: If the file is not a JSON object.
        """
        if not self.settings_path.exists():
            return {}
        try:
            settings = json.loads(self.settings_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {self.settings_path}: {e}") from e
        if not isinstance(settings, dict):
            raise ValueError(f"{self.settings_path} is not a JSON object")
        return settings

    def _write_settings(self, settings: dict[str, Any]) -> None:
        self.settings_path.parent.mkdir(parents=True, exist_ok=True)
        self.settings_path.write_text(json.dumps(settings, indent=2), encoding="utf-8")

    @classmethod
    def _has_our_hook(cls, configs: list) -> bool:
        return any(cls._is_our_config(c) for c in configs)

    @staticmethod
    def _is_our_config(config: object) -> bool:
        if not isinstance(config, dict):
            return False
        return any(
            isinstance(h, dict) and SCRIPT_MARKER in str(h.get("command", ""))
            for h in config.get("hooks") or []
        )
