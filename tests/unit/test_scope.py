"""
Unit tests for scopes, templates and injection.

Tests cover:
- Wildcard matching in both directions
- Template construction and unresolved rendering
- Field and parameter placeholders
- Injection with missing parameters
"""

import pytest
from pydantic import ValidationError

from scopegate.errors import ERROR_UNKNOWN_SCOPE_FIELD, UnknownScopeFieldError
from scopegate.scope import (
    FieldPlaceholder,
    ParameterPlaceholder,
    ScopeField,
    ScopeParams,
    ScopeTemplate,
    field,
    inject_scope,
    is_wildcard,
    matches,
    parameter,
    scope,
    scope_injector,
)


# =============================================================================
# Matching
# =============================================================================


class TestMatches:
    """Tests for the scope matcher."""

    @pytest.mark.parametrize(
        "value",
        ["reports:1", "*", "reports:*", "", "settings:auth.saml:enabled"],
    )
    def test_equal_scopes_match(self, value: str) -> None:
        """Every scope matches itself."""
        assert matches(value, value) is True

    def test_wanted_wildcard(self) -> None:
        """A wildcarded wanted scope covers longer granted scopes."""
        assert matches("reports:*", "reports:1") is True
        assert matches("settings:*", "settings:auth.saml:enabled") is True

    def test_granted_wildcard(self) -> None:
        """A wildcarded granted scope covers longer wanted scopes."""
        assert matches("reports:1", "reports:*") is True
        assert matches("settings:auth.saml:*", "settings:*") is True

    def test_bare_wildcard_matches_everything(self) -> None:
        """A lone "*" is a wildcard over every scope."""
        assert matches("*", "reports:1") is True
        assert matches("teams:id:2", "*") is True

    def test_unequal_scopes_do_not_match(self) -> None:
        """Distinct literal scopes never match."""
        assert matches("reports:1", "reports:2") is False
        assert matches("reports:1", "reports:10") is False

    def test_prefix_without_wildcard_does_not_match(self) -> None:
        """A plain prefix is not enough without a wildcard."""
        assert matches("reports", "reports:1") is False
        assert matches("reports:1", "reports") is False

    def test_wildcard_does_not_cross_kinds(self) -> None:
        """reports:* does not cover settings scopes."""
        assert matches("reports:*", "settings:1") is False
        assert matches("settings:1", "reports:*") is False

    def test_case_sensitive(self) -> None:
        """Matching is case-sensitive."""
        assert matches("Reports:1", "reports:1") is False
        assert matches("Reports:*", "reports:1") is False

    def test_is_wildcard(self) -> None:
        """Only a whole trailing "*" segment is a wildcard."""
        assert is_wildcard("*") is True
        assert is_wildcard("reports:*") is True
        assert is_wildcard("reports*") is False
        assert is_wildcard("reports:1") is False
        assert is_wildcard("") is False


# =============================================================================
# Templates
# =============================================================================


class TestScopeTemplate:
    """Tests for building scope templates."""

    def test_literal_template_renders_scope(self) -> None:
        """A template without placeholders renders to the literal scope."""
        template = scope("settings", "auth.saml", "*")
        assert str(template) == "settings:auth.saml:*"
        assert template.has_placeholders is False

    def test_kind_only(self) -> None:
        """A template may consist of the kind alone."""
        assert str(scope("settings")) == "settings"

    def test_placeholders_render_distinguishably(self) -> None:
        """Placeholders keep a distinct unresolved form."""
        template = scope("orgs", field(ScopeField.ORG_ID), parameter(":teamId"))
        assert str(template) == "orgs:{org_id}:{:teamId}"
        assert template.has_placeholders is True

    def test_template_is_frozen(self) -> None:
        """Templates cannot be modified after construction."""
        template = scope("reports", "1")
        with pytest.raises(ValidationError):
            template.kind = "settings"

    def test_templates_compare_by_value(self) -> None:
        """Two templates with the same parts are equal."""
        assert scope("reports", parameter(":id")) == ScopeTemplate(
            kind="reports",
            parts=(ParameterPlaceholder(key=":id"),),
        )


class TestPlaceholders:
    """Tests for field and parameter placeholders."""

    def test_field_from_enum(self) -> None:
        """field() accepts a ScopeField member."""
        assert field(ScopeField.ORG_ID) == FieldPlaceholder(name=ScopeField.ORG_ID)

    def test_field_from_value(self) -> None:
        """field() accepts the field's string value."""
        assert field("org_id").name is ScopeField.ORG_ID

    def test_unknown_field_fails_at_construction(self) -> None:
        """An unsupported field name is rejected immediately."""
        with pytest.raises(UnknownScopeFieldError) as exc_info:
            field("UserID")

        err = exc_info.value
        assert err.code == ERROR_UNKNOWN_SCOPE_FIELD
        assert err.field_name == "UserID"
        assert "org_id" in err.suggestion

    def test_empty_parameter_key_rejected(self) -> None:
        """A parameter placeholder needs a key."""
        with pytest.raises(ValidationError):
            parameter("")


# =============================================================================
# Injection
# =============================================================================


class TestInjectScope:
    """Tests for resolving templates against ScopeParams."""

    def test_inject_field(self) -> None:
        """Field placeholders resolve from params."""
        template = scope("orgs", field(ScopeField.ORG_ID))
        assert inject_scope(template, ScopeParams(org_id=3)) == "orgs:3"

    def test_inject_default_org_id(self) -> None:
        """The default org id is 0."""
        template = scope("orgs", field(ScopeField.ORG_ID))
        assert inject_scope(template, ScopeParams()) == "orgs:0"

    def test_inject_parameter(self) -> None:
        """Parameter placeholders resolve from url_params."""
        params = ScopeParams(url_params={":id": "10", ":reportId": "1"})
        template = scope("reports", parameter(":reportId"))
        assert inject_scope(template, params) == "reports:1"

    def test_inject_several_parameters(self) -> None:
        """Several placeholders resolve inside one scope."""
        params = ScopeParams(
            url_params={":reportId": "report", ":reportId2": "report2"},
        )
        template = scope("reports", parameter(":reportId"), parameter(":reportId2"))
        assert inject_scope(template, params) == "reports:report:report2"

    def test_missing_parameter_is_empty_segment(self) -> None:
        """A missing parameter becomes an empty segment, not an error."""
        template = scope("reports", parameter(":reportId"))
        assert inject_scope(template, ScopeParams()) == "reports:"

    def test_literals_pass_through(self) -> None:
        """Literal parts are kept as they are."""
        template = scope("settings", "auth.saml", "*")
        assert inject_scope(template, ScopeParams(org_id=1)) == "settings:auth.saml:*"

    def test_plain_string_passes_through(self) -> None:
        """Plain strings are already resolved."""
        assert inject_scope("reports:1", ScopeParams()) == "reports:1"

    def test_injector_maps_every_scope(self) -> None:
        """scope_injector resolves a whole scope list in order."""
        inject = scope_injector(ScopeParams(org_id=2, url_params={":id": "9"}))
        resolved = inject(
            ["teams:1", scope("orgs", field("org_id")), scope("users", parameter(":id"))]
        )
        assert resolved == ["teams:1", "orgs:2", "users:9"]

    def test_params_are_frozen(self) -> None:
        """ScopeParams cannot be reassigned after construction."""
        params = ScopeParams(org_id=1)
        with pytest.raises(ValidationError):
            params.org_id = 2
