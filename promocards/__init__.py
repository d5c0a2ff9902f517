"""promocards - render promotional cards from design templates.

Modules:
- text_layout: pure text geometry for a canvas
- templates: template name -> remote reference
- sources: REST export and live editor automation
- compositor: text overlay on a base image
- uploaders: image hosting sinks
- card_renderer: one request -> one result
- batch: sequential batch orchestration
"""

__version__ = "0.1.0"
