"""
Tests for synthetic data realism profiles.
"""

import json

from survey_analytics.data.generation_profiles import (
    DEFAULT_DEPARTMENTS,
    FALLBACK_SCALE_SCORES,
    GenerationProfile,
    load_generation_profile,
)


class TestGenerationProfile:
    def test_defaults(self):
        profile = load_generation_profile(None)
        assert profile.company_name == "TechCorp"
        assert profile.departments == DEFAULT_DEPARTMENTS

    def test_department_scale_scores(self):
        profile = GenerationProfile()
        assert max(profile.scale_scores_for("Customer Success")) == 10
        assert profile.scale_scores_for("Legal") == FALLBACK_SCALE_SCORES
        assert profile.scale_scores_for(None) == FALLBACK_SCALE_SCORES

    def test_json_overrides(self, tmp_path):
        path = tmp_path / "profile.json"
        path.write_text(
            json.dumps(
                {
                    "company_name": "Globex",
                    "departments": ["Research", "Legal"],
                    "scale_scores": {"Research": [9, 10]},
                    "casual_replacements": [["very", ["super"]]],
                    "not_a_field": True,
                }
            ),
            encoding="utf-8",
        )

        profile = load_generation_profile(str(path))

        assert profile.company_name == "Globex"
        assert profile.departments == ("Research", "Legal")
        assert profile.scale_scores_for("Research") == (9, 10)
        assert profile.casual_replacements == (("very", ("super",)),)
        # untouched fields keep their defaults
        assert profile.email_domain == "techcorp.com"
