"""Plugin registration for the sharegraph hooks.

Plugins are installed packages that advertise an object under the
``sharegraph.plugins`` entry-point group. The object may be an instance
or a class with a no-argument constructor; classes are instantiated
before any hook fires.
"""

from __future__ import annotations

import inspect
import logging

import pluggy

from sharegraph.plugins.hookspecs import PROJECT_NAME, ShareGraphHookSpec

ENTRY_POINT_GROUP = "sharegraph.plugins"

logger = logging.getLogger(__name__)


def create_plugin_manager(*, entry_points: bool = True) -> pluggy.PluginManager:
    """Return a pluggy manager carrying the sharegraph hookspecs.

    With *entry_points* set, every installed plugin is registered.
    """
    pm = pluggy.PluginManager(PROJECT_NAME)
    pm.add_hookspecs(ShareGraphHookSpec)
    if entry_points:
        count = pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        _instantiate_plugin_classes(pm)
        logger.debug("Loaded %d entry-point plugins", count)
    return pm


def _instantiate_plugin_classes(pm: pluggy.PluginManager) -> None:
    """Swap registered plugin classes for instances.

    Hooks called on a class object leave ``self`` unbound. A class whose
    constructor fails is dropped with a warning.
    """
    for plugin in list(pm.get_plugins()):
        if not inspect.isclass(plugin):
            continue
        name = pm.get_name(plugin) or plugin.__name__
        pm.unregister(plugin)
        try:
            instance = plugin()
        except Exception:
            logger.warning("Dropping plugin %s: constructor failed", name, exc_info=True)
            continue
        pm.register(instance, name=name)
