"""
Marker table: the fixed phrases the generation job prints, turned into data.

Classification is substring based and therefore only as good as the job's
wording. Artifact paths are taken as the last whitespace-delimited token on
the line, so a path containing spaces comes back truncated; callers treat the
result as advisory.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple


@dataclass(frozen=True)
class ArtifactRule:
    kind: str                       # "html" | "png"
    extension: str                  # ".html"
    inline_markers: Tuple[str, ...]     # checked on every line while the job runs
    scan_markers: Tuple[str, ...]       # checked in the post-run fallback scan


@dataclass(frozen=True)
class ProgressCue:
    substring: str
    step: str
    progress: int


@dataclass(frozen=True)
class LineMatch:
    artifact_kind: Optional[str] = None
    artifact_path: Optional[str] = None
    step: Optional[str] = None
    progress: Optional[int] = None


OUTPUT_MARKERS = ("Generated:", "Output:", "Generated PNG", "Generated HTML")

DEFAULT_ARTIFACT_RULES: Tuple[ArtifactRule, ...] = (
    ArtifactRule(
        kind="html",
        extension=".html",
        inline_markers=OUTPUT_MARKERS,
        scan_markers=("output", "Output", "Generated HTML", "Generated:"),
    ),
    ArtifactRule(
        kind="png",
        extension=".png",
        inline_markers=OUTPUT_MARKERS,
        scan_markers=("Generated PNG", "Generated:", "PNG"),
    ),
)

# Case-sensitive; first match wins
DEFAULT_PROGRESS_CUES: Tuple[ProgressCue, ...] = (
    ProgressCue("Parsing", "Parsing input file...", 40),
    ProgressCue("Generating HTML", "Generating HTML...", 60),
    ProgressCue("Exporting PNG", "Exporting PNG...", 80),
)

# npm install output that counts as forward progress
INSTALL_PROGRESS_MARKERS = ("added", "packages")


def last_token_with_suffix(line: str, suffix: str) -> Optional[str]:
    for token in reversed(line.split()):
        if token.endswith(suffix):
            return token
    return None


@dataclass(frozen=True)
class MarkerTable:
    artifact_rules: Sequence[ArtifactRule] = DEFAULT_ARTIFACT_RULES
    progress_cues: Sequence[ProgressCue] = DEFAULT_PROGRESS_CUES

    def classify(self, line: str) -> LineMatch:
        kind = path = step = progress = None

        for rule in self.artifact_rules:
            if line.endswith(rule.extension) and any(m in line for m in rule.inline_markers):
                kind = rule.kind
                path = line.split()[-1]
                break

        for cue in self.progress_cues:
            if cue.substring in line:
                step, progress = cue.step, cue.progress
                break

        return LineMatch(artifact_kind=kind, artifact_path=path, step=step, progress=progress)

    def scan(self, lines: Iterable[str], kind: str) -> Optional[str]:
        """
        Fallback for when nothing was captured inline: last matching line wins,
        and within it the last token ending in the rule's extension.
        """
        rule = next((r for r in self.artifact_rules if r.kind == kind), None)
        if rule is None:
            return None

        found: Optional[str] = None
        for line in lines:
            if line.endswith(rule.extension) and any(m in line for m in rule.scan_markers):
                token = last_token_with_suffix(line, rule.extension)
                if token:
                    found = token
        return found


def is_install_progress_line(line: str) -> bool:
    return any(m in line for m in INSTALL_PROGRESS_MARKERS)
