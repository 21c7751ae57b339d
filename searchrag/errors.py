"""Exception hierarchy for the query pipeline.

``PipelineError`` and its subclasses abort a request before any answer text
is streamed. ``FollowUpParseError`` only costs the envelope its
``suggestedQuestions`` field.
"""


class PipelineError(RuntimeError):
    """Fatal fault raised before streaming begins."""


class RephraseError(PipelineError):
    """The query could not be rephrased for search."""


class SearchError(PipelineError):
    """The web search call failed or returned an unreadable payload."""


class SynthesisError(PipelineError):
    """The answer stream could not be opened."""


class FollowUpParseError(ValueError):
    """The follow-up generator did not return three questions."""
