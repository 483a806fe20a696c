"""Configuration resolution: (platform, features) -> defines, patches, toolchain need.

All conditional behaviour lives in :data:`RULES`. Each rule is a predicate over
the platform and feature set plus the defines and patches it contributes.
Contributions are idempotent (a define or patch already present is left in
place), so the final membership does not depend on rule order.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from qjsbuild.errors import ValidationError
from qjsbuild.models import (
    FEATURES,
    DefineSet,
    PlatformDescriptor,
    ResolvedConfig,
    feature_to_define,
)

CONFIG_VERSION = "2020-01-19"

BASE_DEFINES: tuple[tuple[str, str | None], ...] = (
    ("_GNU_SOURCE", None),
    ("CONFIG_VERSION", f'"{CONFIG_VERSION}"'),
    ("CONFIG_BIGNUM", None),
)

BASE_PATCHES: tuple[str, ...] = (
    "error_column_number.patch",
    "get_function_proto.patch",
    "check_stack_overflow.patch",
    "infinity_handling.patch",
)

Predicate = Callable[[PlatformDescriptor, frozenset[str]], bool]


@dataclass(frozen=True, slots=True)
class Rule:
    name: str
    when: Predicate
    defines: tuple[tuple[str, str | None], ...] = ()
    patches: tuple[str, ...] = ()
    needs_toolchain: bool = False


def _feature(name: str) -> Predicate:
    return lambda _platform, features: name in features


def _dump_rules() -> tuple[Rule, ...]:
    return tuple(
        Rule(
            name=feature,
            when=_feature(feature),
            defines=((feature_to_define(feature), None),),
        )
        for feature in FEATURES
        if feature.startswith("dump-")
    )


RULES: tuple[Rule, ...] = (
    Rule(
        name="msvc-compat",
        when=lambda platform, _features: platform.is_msvc,
        patches=("basic_msvc_compat.patch",),
    ),
    Rule(
        name="exports",
        when=_feature("exports"),
        defines=(("CONFIG_MODULE_EXPORTS", None),),
        patches=("read_module_exports.patch",),
    ),
    *_dump_rules(),
    # wasi has no FE_DOWNWARD/FE_UPWARD; the emscripten ifdefs already cover it
    Rule(
        name="wasi",
        when=lambda platform, _features: platform.is_wasi,
        defines=(("EMSCRIPTEN", "1"), ("FE_DOWNWARD", "0"), ("FE_UPWARD", "0")),
        needs_toolchain=True,
    ),
)


def resolve(
    platform: PlatformDescriptor,
    features: Iterable[str] = (),
    *,
    rules: tuple[Rule, ...] = RULES,
) -> ResolvedConfig:
    """Evaluate every rule once and return the resolved configuration."""
    feature_set = frozenset(features)
    unknown = sorted(feature_set - set(FEATURES))
    if unknown:
        raise ValidationError(
            f"Unknown feature toggle(s): {', '.join(unknown)}",
            hint=f"Known features: {', '.join(FEATURES)}",
            context={"target": platform.triple},
        )

    defines: dict[str, str | None] = dict(BASE_DEFINES)
    patches: list[str] = list(BASE_PATCHES)
    needs_toolchain = False

    for rule in rules:
        if not rule.when(platform, feature_set):
            continue
        for name, value in rule.defines:
            defines.setdefault(name, value)
        for patch in rule.patches:
            if patch not in patches:
                patches.append(patch)
        needs_toolchain = needs_toolchain or rule.needs_toolchain

    return ResolvedConfig(
        platform=platform,
        features=feature_set,
        defines=DefineSet(tuple(defines.items())),
        patches=tuple(patches),
        needs_toolchain=needs_toolchain,
    )
