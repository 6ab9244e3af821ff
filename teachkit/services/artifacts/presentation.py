"""
Slide deck (.pptx) built with python-pptx.
"""
from io import BytesIO

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.util import Pt

from teachkit.services.synthesis.base import Slide

TITLE_LAYOUT = 0
TITLE_AND_CONTENT_LAYOUT = 1
AUTHOR = "TeachKit"

TITLE_COLOR = RGBColor(0x2E, 0x50, 0x90)
BODY_COLOR = RGBColor(0x36, 0x36, 0x36)


def build_presentation(topic: str, slides: list[Slide]) -> bytes:
    if not slides:
        raise ValueError("Presentation needs at least one slide")

    deck = Presentation()
    deck.core_properties.author = AUTHOR
    deck.core_properties.title = f"{topic} - Educational Presentation"
    deck.core_properties.subject = f"Educational content about {topic}"

    cover = deck.slides.add_slide(deck.slide_layouts[TITLE_LAYOUT])
    cover.shapes.title.text = topic
    cover.placeholders[1].text = "Educational Presentation"

    for slide in slides:
        page = deck.slides.add_slide(deck.slide_layouts[TITLE_AND_CONTENT_LAYOUT])
        page.shapes.title.text = slide.title
        for run in page.shapes.title.text_frame.paragraphs[0].runs:
            run.font.bold = True
            run.font.color.rgb = TITLE_COLOR

        body = page.placeholders[1].text_frame
        body.clear()
        for i, point in enumerate(slide.content):
            paragraph = body.paragraphs[0] if i == 0 else body.add_paragraph()
            paragraph.text = point
            paragraph.font.size = Pt(18)
            paragraph.font.color.rgb = BODY_COLOR

    buf = BytesIO()
    deck.save(buf)
    return buf.getvalue()
