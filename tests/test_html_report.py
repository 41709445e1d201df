from __future__ import annotations

import pytest
from markupsafe import Markup

from aibrief.report.blocks import classify
from aibrief.report.html_report import build_report_html, render_inline
from aibrief.report.renderer import CoverPage, FooterPage, PreparedSection, ReportDocument
from aibrief.report.sections import ReportSection, Statistic

from conftest import png_bytes


def _document(*sections: ReportSection, banner: bytes | None = None) -> ReportDocument:
    prepared = [
        PreparedSection(number=index, section=section, blocks=classify(section.main_content), banner=banner)
        for index, section in enumerate(sections, start=1)
    ]
    return ReportDocument(
        cover=CoverPage(business_name='Acme & Sons', title='AI Strategic Brief', subtitle='A Roadmap for'),
        sections=prepared,
        footer=FooterPage(brand_name='Brand', tagline='Tagline', disclaimer='Not advice.'),
    )


def test_print_mode_renders_every_part():
    html = build_report_html(
        _document(
            ReportSection(
                title='Strategic AI Roadmap',
                main_content='**Plan**\nGrow revenue by 40%.\n\n• Pilot\n• Scale',
                pull_quote='Move first',
                statistic=Statistic('287%', 'Average ROI'),
                key_takeaways=('Start small',),
            )
        )
    )

    assert '@page' in html
    assert 'Acme &amp; Sons' in html
    assert '01.' in html
    assert '<span class="stat-highlight">40%</span>' in html
    assert 'class="statistic-value">287%<' in html
    assert 'Average ROI' in html
    assert 'Move first' in html
    assert 'Key Takeaways' in html and 'Start small' in html
    assert 'Not advice.' in html


def test_screen_mode_has_no_print_rules():
    html = build_report_html(_document(ReportSection(title='Summary')), mode='screen')
    assert '@page' not in html


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError):
        build_report_html(_document(), mode='slides')


def test_model_output_is_escaped():
    html = build_report_html(
        _document(ReportSection(title='<b>Risky</b>', main_content='Try <script>alert(1)</script> now.'))
    )
    assert '<script>alert(1)</script>' not in html
    assert '&lt;b&gt;Risky&lt;/b&gt;' in html


def test_banner_image_is_inlined_and_placeholder_otherwise():
    with_banner = build_report_html(_document(ReportSection(title='Summary'), banner=png_bytes()))
    without_banner = build_report_html(_document(ReportSection(title='Summary')))

    assert 'data:image/png;base64,' in with_banner
    assert 'data:image/png;base64,' not in without_banner
    assert 'linear-gradient' in without_banner


def test_render_inline_returns_markup():
    rendered = render_inline('**Bold** and 25%')
    assert isinstance(rendered, Markup)
    assert str(rendered) == '<strong>Bold</strong> and <span class="stat-highlight">25%</span>'
    assert str(render_inline('**Title** 25%', highlight=False)) == '<strong>Title</strong> 25%'


def test_bullet_and_numbered_lists_render_every_item():
    html = build_report_html(
        _document(ReportSection(title='Your Implementation Roadmap', main_content='• one\n• two\n\n1. Pilot\n2. Scale'))
    )

    assert html.count('class="bullet-item"') == 4
    assert '<span class="bullet-point">•</span><span>one</span>' in html
    assert '<span class="bullet-point">2.</span><span>Scale</span>' in html
