"""chordcoach: adaptive mastery and spaced-repetition engine for chorded keyboards."""

from chordcoach.consts import VERSION

__version__ = VERSION
