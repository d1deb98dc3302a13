"""Exceptions raised while building a scene.

Rendering kernels never raise; every error below is reported while the scene,
camera or textures are being constructed, before any sample is traced.
"""


class LumenError(Exception):
    """Base class for all errors raised by lumen."""


class ConfigurationError(LumenError, ValueError):
    """The scene description or a constructor argument is invalid.

    Examples are a zero scale component, parallel camera direction and up
    vectors, an unknown type tag or a reference to an undefined material.
    """


class ResourceError(LumenError, OSError):
    """An external resource (such as an image texture file) could not be loaded."""
