import pytest

from services.scan_service.analyzers.tech_stack import build_tech_stack, check_tech_stack, infer_languages
from services.scan_service.schemas.report import ServerInfo, TechItem

HTML5_HINTS = {"tsSource": False, "moduleScripts": False, "sass": False, "php": False, "htmlVersion": "HTML5"}


def _item(name, category="JS Framework"):
    return TechItem(name=name, category=category, confidence="high")


def test_languages_listed_before_detected_items():
    markers = [
        {"name": "WordPress", "category": "CMS", "confidence": "high", "version": "6.4"},
        {"name": "jQuery", "category": "JS Library", "confidence": "high", "version": None},
    ]
    headers = {"server": "nginx", "x-powered-by": "PHP/8.1.2"}
    result = build_tech_stack(markers, HTML5_HINTS, headers)

    names = [t.name for t in result.detected]
    assert names == ["PHP", "JavaScript", "HTML5", "CSS", "WordPress", "jQuery"]
    assert result.detected[0].version == "8.1.2"
    assert result.detected[4].icon == "📝"
    assert result.total_detected == 6
    assert result.server_info.powered_by == "PHP/8.1.2"


def test_language_dedup_keeps_first_confidence():
    langs = infer_languages(ServerInfo(), [_item("Next.js")], {**HTML5_HINTS, "tsSource": True})
    ts = [l for l in langs if l.name == "TypeScript"]
    assert len(ts) == 1
    assert ts[0].confidence == "medium"
    assert [l.name for l in langs][:2] == ["Node.js", "TypeScript"]


def test_module_scripts_hint_typescript():
    langs = infer_languages(ServerInfo(), [], {**HTML5_HINTS, "moduleScripts": True})
    assert ("TypeScript", "medium") in [(l.name, l.confidence) for l in langs]


def test_python_server_header():
    langs = infer_languages(ServerInfo(server="uvicorn"), [], HTML5_HINTS)
    assert langs[0].name == "Python"
    assert all(l.category == "Language" for l in langs)


def test_missing_headers_still_report_baseline_languages():
    result = build_tech_stack([], {"htmlVersion": "XHTML"}, None)
    assert [t.name for t in result.detected] == ["JavaScript", "XHTML", "CSS"]
    assert result.server_info.server is None


def test_unknown_category_uses_default_icon():
    result = build_tech_stack([{"name": "Thing", "category": "Other", "confidence": "low"}], HTML5_HINTS, {})
    assert result.detected[-1].icon == "🔩"


@pytest.mark.asyncio
async def test_check_tech_stack_uses_shared_headers(fake_page_cls):
    page = fake_page_cls({
        "const add = (name": [{"name": "React", "category": "JS Framework", "confidence": "high", "version": "18.2.0"}],
        "htmlVersion": HTML5_HINTS,
    })
    result = await check_tech_stack(page, {"server": "Microsoft-IIS/10.0"})

    names = [t.name for t in result.detected]
    assert names[:2] == ["C# / ASP.NET", "Node.js"]
    assert names[-1] == "React"
    assert result.model_dump(by_alias=True)["serverInfo"]["server"] == "Microsoft-IIS/10.0"
