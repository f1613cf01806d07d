"""
Iris finding normalisation.

Turns the qualitative iris signs into an organ-system analysis and a list of
noted signs for the report. Every finding yields at least one organ entry.
"""

from api.models.iris import (
    ConstitutionalType,
    FiberDensity,
    FindingSeverity,
    IrisFinding,
    IrisSign,
    LacunaeCount,
    OrganAnalysis,
    PupilSize,
    SignIntensity,
)

BOTH_EYES = "Both eyes"

CONSTITUTION_ORGANS = {
    ConstitutionalType.NEUROGENIC: (
        "Nervous System",
        ["High nervous system sensitivity", "Stress response tendencies"],
        "nervous",
    ),
    ConstitutionalType.POLYGLANDULAR: (
        "Endocrine System",
        ["Glandular imbalances", "Hormonal fluctuations"],
        "metabolic",
    ),
    ConstitutionalType.CONNECTIVE_TISSUE: (
        "Connective Tissue",
        ["Connective tissue weakness", "Structural support needs"],
        "joint",
    ),
    ConstitutionalType.LYMPHATIC: (
        "Lymphatic System",
        ["Lymphatic congestion tendency", "Immune system support needed"],
        "lymphatic",
    ),
    ConstitutionalType.BILIARY: (
        "Hepatobiliary System",
        ["Liver/gallbladder support needed", "Digestive weakness"],
        "digestive",
    ),
}

PUPIL_FINDINGS = {
    PupilSize.MIOTIC: "Parasympathetic dominance",
    PupilSize.MYDRIATIC: "Sympathetic dominance",
}


def organ_analysis(finding: IrisFinding) -> list[OrganAnalysis]:
    """Organ-system readings implied by an iris finding."""
    analysis: list[OrganAnalysis] = []

    organ = CONSTITUTION_ORGANS.get(finding.constitutional_type)
    if organ:
        name, notes, domain = organ
        analysis.append(
            OrganAnalysis(
                organ=name,
                findings=notes,
                severity=FindingSeverity.MODERATE,
                location=BOTH_EYES,
                domain=domain,
            )
        )

    if finding.fiber_density in (FiberDensity.LOOSE, FiberDensity.VERY_LOOSE):
        analysis.append(
            OrganAnalysis(
                organ="Constitutional Strength",
                findings=["Weak constitutional fibers", "Need for constitutional support"],
                severity=(
                    FindingSeverity.SEVERE
                    if finding.fiber_density == FiberDensity.VERY_LOOSE
                    else FindingSeverity.MODERATE
                ),
                location=BOTH_EYES,
                domain="energy",
            )
        )
    elif finding.fiber_density == FiberDensity.TIGHT:
        analysis.append(
            OrganAnalysis(
                organ="Constitutional Strength",
                findings=["Strong constitutional fibers", "Good inherent vitality"],
                severity=FindingSeverity.MILD,
                location=BOTH_EYES,
            )
        )

    if finding.pupil_size != PupilSize.NORMAL:
        analysis.append(
            OrganAnalysis(
                organ="Autonomic Nervous System",
                findings=[PUPIL_FINDINGS.get(finding.pupil_size, "Autonomic imbalance")],
                severity=FindingSeverity.MODERATE,
                location="Central zone",
                domain="nervous",
            )
        )

    if finding.stress_rings != SignIntensity.NONE:
        analysis.append(
            OrganAnalysis(
                organ="Stress Response System",
                findings=["Chronic stress patterns", "Nervous tension rings"],
                severity=FindingSeverity(finding.stress_rings.value),
                location="Peripheral zones",
                domain="stress",
            )
        )

    if finding.lacunae != LacunaeCount.NONE:
        analysis.append(
            OrganAnalysis(
                organ="Tissue Integrity",
                findings=["Tissue weakness signs", "Genetic predisposition markers"],
                severity=(
                    FindingSeverity.MODERATE
                    if finding.lacunae == LacunaeCount.MANY
                    else FindingSeverity.MILD
                ),
                location="Various zones",
                domain="cellular",
            )
        )

    if not analysis:
        analysis.append(
            OrganAnalysis(
                organ="General Constitution",
                findings=["Constitutional assessment completed"],
                severity=FindingSeverity.MILD,
                location=BOTH_EYES,
            )
        )

    return analysis


def iris_signs(finding: IrisFinding) -> list[IrisSign]:
    """Signs worth listing on the report."""
    signs = [
        IrisSign(
            sign="Constitutional Type",
            description=f"{finding.constitutional_type.value} constitution identified",
            significance="Indicates primary constitutional tendencies",
        ),
        IrisSign(
            sign="Fiber Density",
            description=f"{finding.fiber_density.value} fiber pattern observed",
            significance="Indicates inherent constitutional strength",
        ),
    ]
    if finding.stress_rings != SignIntensity.NONE:
        signs.append(
            IrisSign(
                sign="Stress Rings",
                description=f"{finding.stress_rings.value} stress rings detected",
                significance="Indicates nervous system tension",
            )
        )
    if finding.lacunae != LacunaeCount.NONE:
        signs.append(
            IrisSign(
                sign="Lacunae",
                description=f"{finding.lacunae.value} lacunae present",
                significance="Indicates areas of tissue weakness",
            )
        )
    if finding.collarette_position != "central":
        signs.append(
            IrisSign(
                sign="Collarette Position",
                description=f"{finding.collarette_position} collarette position",
                significance="Indicates autonomic nervous system balance",
            )
        )
    return signs


def problem_domains(analysis: list[OrganAnalysis]) -> list[str]:
    """Therapy search domains from non-mild organ readings, first seen first."""
    domains: list[str] = []
    for entry in analysis:
        if entry.severity == FindingSeverity.MILD or not entry.domain:
            continue
        if entry.domain not in domains:
            domains.append(entry.domain)
    return domains
