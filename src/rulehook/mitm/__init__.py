"""Mitmproxy binding for the rule hooks."""

from rulehook.mitm.addon import RuleHookAddon

__all__ = ["RuleHookAddon"]
