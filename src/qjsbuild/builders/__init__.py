from qjsbuild.builders.base import Builder, StaticLibSpec
from qjsbuild.builders.c import CBuilder

__all__ = ["Builder", "CBuilder", "StaticLibSpec"]
