from frontend.utils.theme import display_value, info_field, pill_tag


def test_info_field_escapes_extracted_markup():
    cell = info_field("Patient Name", '<img src=x onerror="alert(1)">')

    assert "<img" not in cell
    assert "&lt;img src=x onerror=&quot;alert(1)&quot;&gt;" in cell


def test_info_field_renders_missing_values_as_dash():
    assert '<div class="info-value">—</div>' in info_field("Lab Name", "not found")
    assert '<div class="info-value">—</div>' in info_field("Lab Name", None)


def test_pill_tag_escapes_file_names():
    assert pill_tag("<b>scan</b>.pdf") == '<span class="pill">&lt;b&gt;scan&lt;/b&gt;.pdf</span>'


def test_display_value_keeps_real_values():
    assert display_value(42) == "42"
    assert display_value("  Not Found ") == "—"
