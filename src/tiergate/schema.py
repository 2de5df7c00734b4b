from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


class _ArtifactModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # JSON null reads as "absent" so the field default applies.
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class FileEntryDTO(_ArtifactModel):
    repo_path: Optional[str] = Field(default=None, alias="repoPath")
    score: Optional[float] = None
    complexity_score: Optional[float] = Field(default=None, alias="complexityScore")
    priority: Optional[Union[str, float]] = None
    issues: List[Any] = []
    for_each_mutation_hits: List[Any] = Field(default=[], alias="forEachMutationHits")

    @property
    def effective_score(self) -> float:
        if self.score is not None:
            return self.score
        if self.complexity_score is not None:
            return self.complexity_score
        return 0.0


class PoolDTO(_ArtifactModel):
    priority: Optional[Union[str, float]] = None
    total_score: Optional[float] = Field(default=None, alias="totalScore")
    error_count: Optional[int] = Field(default=None, alias="errorCount")


class GroupDTO(_ArtifactModel):
    unique_files: int = Field(default=0, alias="uniqueFiles")
    occurrences: Optional[int] = None
    line_count: int = Field(default=0, alias="lineCount")

    @property
    def leverage(self) -> int:
        return self.unique_files * self.line_count


class SummaryDTO(_ArtifactModel):
    total_errors: int = Field(default=0, alias="totalErrors")
    total_warnings: int = Field(default=0, alias="totalWarnings")
    untested_source_files: int = Field(default=0, alias="untestedSourceFiles")
    orphaned_test_files: int = Field(default=0, alias="orphanedTestFiles")
    coverage_percentage: float = Field(default=0.0, alias="coveragePercentage")


class IssueDTO(_ArtifactModel):
    severity: str = ""


class CategoryDTO(_ArtifactModel):
    id: Optional[str] = None
    priority: Optional[Union[str, float]] = None
    errors: List[Any] = []


class UntestedPriorityDTO(_ArtifactModel):
    bucket: Optional[str] = None
    overall: Optional[float] = None


class UntestedSourceDTO(_ArtifactModel):
    priority: Optional[UntestedPriorityDTO] = None


class RuleFindingDTO(_ArtifactModel):
    rule_id: Optional[str] = Field(default=None, alias="ruleId")


class RepairWavesDTO(_ArtifactModel):
    high_fan_in: List[Any] = Field(default=[], alias="highFanIn")


class ScannerReport(_ArtifactModel):
    """Union of the optional sections scanner artifacts may carry.

    Each category generator reads only the sections it understands; unknown
    keys are kept so score sources can still address them.
    """

    generated_at: Optional[str] = Field(default=None, alias="generatedAt")
    files: List[FileEntryDTO] = []
    errors: List[Any] = []
    pools: List[PoolDTO] = []
    groups: List[GroupDTO] = []
    summary: SummaryDTO = SummaryDTO()
    issues: List[IssueDTO] = []
    categories: List[CategoryDTO] = []
    untested_source: List[UntestedSourceDTO] = Field(default=[], alias="untestedSource")
    findings: List[RuleFindingDTO] = []
    repair_waves: RepairWavesDTO = Field(default=RepairWavesDTO(), alias="repairWaves")

    def rule_count(self, *rule_ids: str) -> int:
        wanted = set(rule_ids)
        return sum(1 for finding in self.findings if finding.rule_id in wanted)


def parse_scanner_report(raw: object) -> ScannerReport | None:
    """Validate a decoded artifact; None when the root or a section has the wrong shape."""
    if not isinstance(raw, dict):
        return None
    try:
        return ScannerReport.model_validate(raw)
    except ValidationError:
        return None
