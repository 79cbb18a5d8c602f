"""
Tests for the dialogue coverage audit.

Run with: pytest tests/test_fidelity_audit.py -v
"""
from fidelity_audit import audit_fidelity
from models import ParsedScript


def script_with(*texts):
    script = ParsedScript()
    for text in texts:
        script.add_line("JOURDAIN", text)
    return script


class TestFidelityAudit:

    def test_lost_block_is_reported(self):
        raw = [
            "JOURDAIN: Bonjour monsieur, comment allez-vous ce matin ?",
            "Une longue tirade que le parseur a perdue en route.",
            "(Il sort en claquant la porte derrière lui.)",
            "ACTE DEUX",
        ]
        report = audit_fidelity(raw, script_with("Bonjour monsieur, comment allez-vous ce matin ?"))
        assert report.missing_blocks == ["Une longue tirade que le parseur a perdue en route."]
        assert report.parsed_chars == 41
        assert 0 < report.coverage < 50
        assert report.rating == "low"

    def test_wrapped_block_is_joined(self):
        raw = ["Une réplique écrite sur", "deux lignes du texte source."]
        report = audit_fidelity(raw, script_with("Une réplique écrite sur deux lignes du texte source."))
        assert report.missing_blocks == []
        assert report.coverage == 100.0
        assert report.rating == "high"

    def test_stage_directions_are_not_counted_as_parsed(self):
        script = script_with("Courte.")
        script.add_line("JOURDAIN", "Il entre par la porte du fond, très agité.", "stage_direction")
        report = audit_fidelity(["Courte.", "Il entre par la porte du fond, très agité."], script)
        assert report.parsed_chars == len("Courte.")
        assert report.missing_blocks == []

    def test_empty_source(self):
        report = audit_fidelity([], ParsedScript())
        assert report.coverage == 0.0
        assert report.rating == "low"
