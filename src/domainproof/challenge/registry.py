"""Challenge method handler registry.

Loads handlers from configuration (built-in methods and custom
``ext:`` extensions) and provides lookup by :class:`ChallengeMethod`.
A method that fails to load is logged and skipped; the others still
load.

Usage::

    from domainproof.challenge.registry import MethodRegistry

    registry = MethodRegistry(settings.challenges, dns_probe=..., http_probe=...)
    handler = registry.get_handler(ChallengeMethod.DNS_TXT)
    handler.probe(challenge, domain)
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING, Any

from domainproof.challenge.base import ChallengeMethodHandler
from domainproof.core.types import ChallengeMethod

if TYPE_CHECKING:
    from domainproof.config.settings import ChallengeSettings

log = logging.getLogger(__name__)

# Maps config string → (module_path, class_name, settings attribute, probe kwarg)
_BUILTIN_HANDLERS: dict[str, tuple[str, str, str, str]] = {
    "DNS_TXT": ("domainproof.challenge.dns_txt", "DnsTxtHandler", "dns_txt", "dns_probe"),
    "HTTP": ("domainproof.challenge.http", "HttpHandler", "http", "http_probe"),
}

KNOWN_METHODS = frozenset(_BUILTIN_HANDLERS)


class MethodRegistry:
    """Registry of enabled challenge method handlers.

    Parameters
    ----------
    settings:
        The ``challenges`` section from :class:`DomainProofSettings`.
    dns_probe, http_probe:
        Collaborators handed to the built-in handlers.

    """

    def __init__(
        self,
        settings: ChallengeSettings,
        *,
        dns_probe: Any = None,  # noqa: ANN401
        http_probe: Any = None,  # noqa: ANN401
    ) -> None:
        self._settings = settings
        self._probes = {"dns_probe": dns_probe, "http_probe": http_probe}
        self._handlers: dict[ChallengeMethod, ChallengeMethodHandler] = {}
        self._load()

    def _load(self) -> None:
        for name in self._settings.enabled:
            try:
                if name in _BUILTIN_HANDLERS:
                    self._load_builtin(name)
                elif name.startswith("ext:"):
                    self._load_external(name[4:])
                else:
                    log.warning("Unknown challenge method '%s', skipping", name)
            except Exception:
                log.exception("Failed to load challenge method '%s', skipping", name)

    def _load_builtin(self, name: str) -> None:
        mod_path, cls_name, settings_attr, probe_kwarg = _BUILTIN_HANDLERS[name]
        module = importlib.import_module(mod_path)
        cls = getattr(module, cls_name)

        handler = cls(
            settings=getattr(self._settings, settings_attr, None),
            probe=self._probes[probe_kwarg],
        )
        self._handlers[handler.method] = handler
        log.info("Loaded challenge method: %s", name)

    def _load_external(self, fqn: str) -> None:
        """Load a handler by fully-qualified class name.

        The class must subclass :class:`ChallengeMethodHandler` and
        declare a ``method``.  It is constructed with ``settings=None``.
        """
        module_path, _, cls_name = fqn.rpartition(".")
        if not module_path:
            msg = (
                f"Invalid external handler '{fqn}': must be fully "
                "qualified (e.g. 'mypackage.module.ClassName')"
            )
            raise ValueError(msg)

        module = importlib.import_module(module_path)
        cls = getattr(module, cls_name)

        if not (isinstance(cls, type) and issubclass(cls, ChallengeMethodHandler)):
            msg = f"External handler '{fqn}' must be a subclass of ChallengeMethodHandler"
            raise TypeError(msg)
        if not isinstance(getattr(cls, "method", None), ChallengeMethod):
            msg = f"External handler '{fqn}' must declare a ChallengeMethod 'method'"
            raise TypeError(msg)

        handler = cls(settings=None)
        self._handlers[handler.method] = handler
        log.info("Loaded external challenge method: %s", fqn)

    def get_handler(self, method: ChallengeMethod) -> ChallengeMethodHandler:
        """Return the handler for *method*.

        Raises
        ------
        KeyError
            If the method is not enabled.

        """
        try:
            return self._handlers[method]
        except KeyError:
            msg = f"No handler registered for challenge method '{method.value}'"
            raise KeyError(msg) from None

    def is_enabled(self, method: ChallengeMethod) -> bool:
        return method in self._handlers

    @property
    def enabled_methods(self) -> list[ChallengeMethod]:
        return list(self._handlers.keys())
