"""Forms validating chart and table data-load requests."""

from __future__ import annotations

from datetime import date, timedelta

from django import forms

from aggregation.buckets import Granularity, parse_granularity
from aggregation.engine import AggregationEngine
from aggregation.errors import InvalidGranularity, UnknownPredicate
from aggregation.predicates import FilterToken, decode_token

from .sections import LOD_LABELS, SectionConfig


class _SectionRequestForm(forms.Form):
    """Shared date range and LOD handling for section requests."""

    lod = forms.CharField(label="Level of detail")
    start_date = forms.DateField(required=False, label="Start date")
    end_date = forms.DateField(required=False, label="End date")

    def __init__(self, *args, **kwargs) -> None:
        """Initialize the form for a section.

        Keyword Args:
            section: SectionConfig whose metrics/dimensions are selectable.
            today: Date used to resolve the default range.
            default_range_days: Length of the default range in days.
        """

        self.section: SectionConfig = kwargs.pop("section")
        today: date | None = kwargs.pop("today", None)
        self._default_range_days: int = kwargs.pop("default_range_days", 30)
        super().__init__(*args, **kwargs)
        self._today = today or date.today()

    def clean_lod(self) -> Granularity:
        raw = (self.cleaned_data.get("lod") or "").strip()
        try:
            lod = parse_granularity(raw)
        except InvalidGranularity as exc:
            raise forms.ValidationError(str(exc)) from exc
        if lod not in self.section.lod_levels:
            enabled = ", ".join(level.value for level in self.section.lod_levels)
            raise forms.ValidationError(f"{LOD_LABELS[lod].capitalize()} data is not enabled; choose one of {enabled}.")
        return lod

    def clean(self) -> dict[str, object]:
        """Apply the default date range (today minus N days through today)."""

        cleaned = super().clean()
        if not cleaned.get("end_date"):
            cleaned["end_date"] = self._today
        if not cleaned.get("start_date"):
            cleaned["start_date"] = cleaned["end_date"] - timedelta(days=self._default_range_days)
        if cleaned["start_date"] > cleaned["end_date"]:
            self.add_error("start_date", "Start date must not be after the end date.")
        return cleaned


def _optional_choice(value: str | None) -> str | None:
    return value or None


class ChartDataForm(_SectionRequestForm):
    """Validate a chart `loadData` request."""

    primary_metric = forms.ChoiceField(choices=(), label="Primary metric")
    secondary_metric = forms.ChoiceField(choices=(), required=False, label="Secondary metric")

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        choices = [(config.metric_key, config.metric_key) for config in self.section.chart_metrics]
        self.fields["primary_metric"].choices = choices
        self.fields["secondary_metric"].choices = [("", "(none)"), *choices]

    def clean_secondary_metric(self) -> str | None:
        return _optional_choice(self.cleaned_data.get("secondary_metric"))


class TableDataForm(_SectionRequestForm):
    """Validate a table `loadData` request."""

    primary_dimension = forms.ChoiceField(choices=(), label="Primary dimension")
    secondary_dimension = forms.ChoiceField(choices=(), required=False, label="Secondary dimension")

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        choices = [(key, key) for key in self.section.dimensions]
        self.fields["primary_dimension"].choices = choices
        self.fields["secondary_dimension"].choices = [("", "(none)"), *choices]

    def clean_secondary_dimension(self) -> str | None:
        return _optional_choice(self.cleaned_data.get("secondary_dimension"))


class TableRowDataForm(ChartDataForm):
    """Validate a chart `loadTableRowData` request for one table row."""

    key = forms.CharField(label="Row key")
    primary_dimension = forms.ChoiceField(choices=(), label="Primary dimension")
    primary_dimension_id = forms.CharField(required=False, label="Primary dimension item")
    secondary_dimension = forms.ChoiceField(choices=(), required=False, label="Secondary dimension")
    secondary_dimension_id = forms.CharField(required=False, label="Secondary dimension item")

    def __init__(self, *args, **kwargs) -> None:
        """Initialize the form for a section.

        Keyword Args:
            engine: AggregationEngine whose dimension catalogs issue the
                accepted filter tokens.
        """

        self._engine: AggregationEngine = kwargs.pop("engine")
        super().__init__(*args, **kwargs)
        self.fields.pop("secondary_metric")
        choices = [(key, key) for key in self.section.dimensions]
        self.fields["primary_dimension"].choices = choices
        self.fields["secondary_dimension"].choices = [("", "(none)"), *choices]

    def clean_secondary_dimension(self) -> str | None:
        return _optional_choice(self.cleaned_data.get("secondary_dimension"))

    def _clean_token(self, field_name: str) -> FilterToken | None:
        try:
            return decode_token(self.cleaned_data.get(field_name) or None)
        except UnknownPredicate as exc:
            raise forms.ValidationError(str(exc)) from exc

    def clean_primary_dimension_id(self) -> FilterToken | None:
        return self._clean_token("primary_dimension_id")

    def clean_secondary_dimension_id(self) -> FilterToken | None:
        return self._clean_token("secondary_dimension_id")

    def clean(self) -> dict[str, object]:
        """Reject tokens that the selected dimension's catalog never issues."""

        cleaned = super().clean()
        for dimension_field in ("primary_dimension", "secondary_dimension"):
            token_field = f"{dimension_field}_id"
            dimension_key = cleaned.get(dimension_field)
            token = cleaned.get(token_field)
            if not dimension_key or token is None:
                continue
            kinds = {item.token.kind for item in self._engine.dimension_items(dimension_key) if item.token is not None}
            if token.kind not in kinds:
                self.add_error(token_field, f"Filter {token.kind!r} does not belong to dimension {dimension_key!r}.")
        return cleaned
