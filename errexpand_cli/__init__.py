"""errexpand: expand a Go call into an idiomatic ``if err != nil`` check."""

__version__ = "0.3.0"
