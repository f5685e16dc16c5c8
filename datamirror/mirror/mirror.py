"""
Mirror: Root Store and Namespace Manager

The root `Mirror` is itself a namespace bound to an empty context, so
`mirror.key(...)` and `mirror.keys([...])` work without selecting one.
`mirror.namespace(context)` lazily creates one isolated store per context
object, all sharing the same options and config.

Namespaces are keyed by context identity. Contexts that support weak
references are held weakly and their namespace is forgotten once the
context is collected; others (plain dicts, for instance) are held until
`release_namespace(context)` is called.

Usage:
    mirror = create_mirror(fetch_user)
    tenant = mirror.namespace(request_context)
    user = await tenant.key(user_id).get()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from functools import partial
from typing import Any, Callable, Optional, Union

from datamirror.core.config import MirrorConfig
from datamirror.core.errors import ConfigurationError
from datamirror.mirror.namespaced import NamespacedMirror, reference_to
from datamirror.mirror.options import FetchFunction, MirrorOptions

logger = logging.getLogger(__name__)


@dataclass(eq=False, slots=True)
class _NamespaceEntry:
    context_ref: Callable[[], Any]
    mirror: NamespacedMirror


class Mirror(NamespacedMirror):
    """Root store plus a registry of per-context namespaces."""

    def __init__(
        self,
        options: MirrorOptions,
        config: Optional[MirrorConfig] = None,
    ) -> None:
        super().__init__(options, {}, config)
        self._namespaces: dict[int, _NamespaceEntry] = {}

    @property
    def namespace_count(self) -> int:
        return len(self._namespaces)

    def namespace(self, context: Any) -> NamespacedMirror:
        """Store for `context`, created on first use."""
        context_id = id(context)
        entry = self._namespaces.get(context_id)
        if entry is not None and entry.context_ref() is context:
            return entry.mirror

        mirror = NamespacedMirror(self._options, context, self._config)
        context_ref = reference_to(
            context,
            partial(self._forget_namespace, context_id),
        )
        self._namespaces[context_id] = _NamespaceEntry(context_ref, mirror)
        logger.debug(f"Created namespace for {type(context).__name__} context")
        return mirror

    def release_namespace(self, context: Any) -> bool:
        """
        Purge and forget the namespace for `context`.

        Returns:
            True if a namespace was registered for the context
        """
        entry = self._namespaces.get(id(context))
        if entry is None or entry.context_ref() is not context:
            return False
        del self._namespaces[id(context)]
        entry.mirror.purge()
        return True

    def _forget_namespace(self, context_id: int, context_ref: Any) -> None:
        entry = self._namespaces.get(context_id)
        if entry is not None and entry.context_ref is context_ref:
            del self._namespaces[context_id]
            logger.debug("Dropped namespace of a collected context")


def create_mirror(
    options: Union[MirrorOptions, FetchFunction, None] = None,
    *,
    config: Optional[MirrorConfig] = None,
    **overrides: Any,
) -> Mirror:
    """
    Build a root mirror.

    `options` may be a MirrorOptions, or a bare per-key fetch function.
    Keyword overrides replace individual option fields.

    Raises:
        ConfigurationError: Invalid options or config
    """
    if options is None:
        options = MirrorOptions(**overrides)
    elif isinstance(options, MirrorOptions):
        if overrides:
            options = replace(options, **overrides)
    elif callable(options):
        options = MirrorOptions(fetch=options, **overrides)
    else:
        raise ConfigurationError.invalid(
            f"expected MirrorOptions or a fetch function, got {type(options).__name__}"
        )

    config = config or MirrorConfig()
    validation = config.validate()
    if validation.is_err():
        raise ConfigurationError.invalid(validation.error)

    return Mirror(options, config)
