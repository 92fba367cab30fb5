"""
Tests for contract rendering and re-render normalisation.
"""

from app.features.collaboration_contracts.domain import VariableEntry
from app.features.collaboration_contracts.templating import (
    assign_occurrences,
    format_display_date,
    normalize_rendered,
    parse_tokens,
    prepare_template,
    render_contract,
)
from app.features.collaboration_contracts.templating.renderer import (
    ASSETS_END,
    ASSETS_START,
    PLAIN_TEXT_STYLE,
    SIGNATURE_TEXT_STYLE,
)

TEMPLATE = "Hello var[{{name}}], sign: var[{{signature}}] and var[{{signature}}]"


def _render(html: str, resolved: dict | None = None, overrides: dict | None = None):
    prepared = prepare_template(html)
    plan = assign_occurrences(parse_tokens(prepared.body), resolved or {}, overrides)
    return render_contract(prepared, plan)


def _name(value: str) -> dict:
    return {"name": VariableEntry(name="name", occurrence_key="name", raw_values=[value])}


def test_two_independent_empty_signature_boxes():
    rendered = _render(TEMPLATE, _name("Ana"))

    assert "Hello Ana," in rendered.body_html
    assert rendered.body_html.count('class="signature-box') == 2
    assert 'data-occurrence-key="signature_0"' in rendered.body_html
    assert 'data-occurrence-key="signature_1"' in rendered.body_html


def test_first_signature_filled_second_left_empty():
    rendered = _render(TEMPLATE, _name("Ana"), {"signature_0": "A.Ray"})

    assert ">A.Ray</span>" in rendered.body_html
    assert SIGNATURE_TEXT_STYLE in rendered.body_html
    assert rendered.body_html.count('class="signature-box') == 1
    assert 'data-occurrence-key="signature_1"' in rendered.body_html


def test_image_signature_is_rendered_as_img():
    rendered = _render(
        "var[{{signature.user}}]", overrides={"signature.user_0": "data:image/png;base64,AAA"}
    )

    assert '<img src="data:image/png;base64,AAA" alt="Signature"' in rendered.body_html


def test_plain_text_fill_uses_plain_style():
    rendered = _render("Terms: var[{{plain_text}}]", overrides={"plain_text_0": "Net 30"})

    assert PLAIN_TEXT_STYLE in rendered.body_html
    assert "Net 30" in rendered.body_html
    assert "placeholder-box" not in rendered.body_html


def test_rerendering_a_rendered_document_is_stable():
    overrides = {"signature_0": "A.Ray"}
    first = _render(TEMPLATE, _name("Ana"), overrides)

    second = _render(first.document_html, {}, overrides)

    assert second.body_html == first.body_html
    assert second.document_html == first.document_html


def test_empty_boxes_are_not_wrapped_again():
    first = _render(TEMPLATE, _name("Ana"))

    second = _render(first.document_html)

    assert second.body_html.count('class="signature-box') == 2
    assert second.body_html.count("var[{{signature}}]") == 2


def test_legacy_artefacts_become_tokens_again():
    assert normalize_rendered('<img src="x.png" alt="Signature" />') == "var[{{signature}}]"
    assert (
        normalize_rendered('<img data-signature-key="signature.influencer" src="x.png">')
        == "var[{{signature.influencer}}]"
    )
    assert (
        normalize_rendered('<span class="signature-box">var[{{signature.user}}]</span>')
        == "var[{{signature.user}}]"
    )
    assert (
        normalize_rendered("<span style=\"font-family: 'Dancing Script', cursive\">Ana</span>")
        == "var[{{signature}}]"
    )


def test_unquoted_decorative_font_is_not_a_signature():
    html = '<span style="font-family: Pacifico">Welcome aboard</span>'

    assert normalize_rendered(html) == html


def test_raw_template_keeps_logo_and_decorative_text():
    html = (
        "<p><span style=\"font-family: 'Pacifico'\">Welcome aboard</span></p>"
        '<p><img src="ceo.png" alt="Signature"> var[{{signature}}]</p>'
    )

    prepared = prepare_template(html)

    assert "Welcome aboard" in prepared.body
    assert "ceo.png" in prepared.body
    assert prepared.body.count("var[{{signature}}]") == 1


def test_stored_document_from_earlier_renderer_is_normalised():
    stored = '<p>Signed: <img src="data:image/png;base64,AAA" alt="Signature"></p>'

    prepared = prepare_template(stored, stored=True)

    assert prepared.body == "<p>Signed: var[{{signature}}]</p>"


def test_stored_document_keeps_template_logo():
    template = '<p><img src="ceo.png" alt="Signature"></p><p>var[{{signature.influencer}}]</p>'
    first = _render(template, overrides={"signature.influencer_0": "Ana Ray"})

    prepared = prepare_template(first.document_html, stored=True)

    assert "ceo.png" in prepared.body
    assert "var[{{signature.influencer}}]" in prepared.body


def test_template_styles_are_carried_into_the_document():
    html = (
        "<html><head><style>.terms{color:red}</style></head>"
        '<body><p class="terms">var[{{name}}]</p></body></html>'
    )

    rendered = _render(html, _name("Ana"))

    assert rendered.body_html == '<p class="terms">Ana</p>'
    assets = rendered.document_html.split(ASSETS_START, 1)[1].split(ASSETS_END, 1)[0]
    assert "<style>.terms{color:red}</style>" in assets


def test_missing_values_render_as_dashes_and_text_is_escaped():
    resolved = {
        "notes": VariableEntry(name="notes", occurrence_key="notes", raw_values=["<b>x</b>\nline 2"]),
        "empty": VariableEntry(name="empty", occurrence_key="empty"),
    }

    rendered = _render("var[{{notes}}]|var[{{empty}}]|var[{{unknown}}]", resolved)

    assert rendered.body_html == "&lt;b&gt;x&lt;/b&gt;<br />line 2|--|--"


def test_date_placeholders_are_formatted():
    resolved = {
        "start_date": VariableEntry(
            name="start_date", occurrence_key="start_date", raw_values=["2024-03-05"]
        )
    }

    rendered = _render("Starts var[{{start_date}}]", resolved)

    assert rendered.body_html == "Starts March 5, 2024"


def test_format_display_date_leaves_other_text_alone():
    assert format_display_date("2024-12-01T10:00:00Z") == "December 1, 2024"
    assert format_display_date("2024-02-30") == "2024-02-30"
    assert format_display_date("next week") == "next week"
