"""audiopass - single-pass audio track recode, downmix, reorder and retitle."""

__version__ = "0.3.0"
