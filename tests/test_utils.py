from scholarsync.utils import slugify, strip_markup


def test_strip_markup_removes_tags() -> None:
    assert strip_markup("<jats:p>Dark <i>matter</i></jats:p>") == "Dark matter"
    assert strip_markup("<br/>") is None
    assert strip_markup(None) is None
    assert strip_markup(["Title"]) is None


def test_slugify_basic() -> None:
    assert slugify("Neuro Imaging & Behavior") == "neuro-imaging-behavior"
