"""Abstract interfaces for the document and rendering collaborators."""

from abc import ABC, abstractmethod

from fieldsign.models.document import PageSize, SourceDocument


class DocumentSourceError(Exception):
    """Raised when source document bytes cannot be obtained."""

    pass


class IDocumentSource(ABC):
    """Supplies the document that fields are composited onto."""

    @abstractmethod
    async def load(self) -> SourceDocument:
        """
        Load the source document.

        :return: Existing PDF bytes, or raw text content plus a title.
        :raises DocumentSourceError: If the document cannot be obtained.
        """
        pass


class IRenderingSurface(ABC):
    """Reports page count and natural page sizes of a loaded document."""

    @property
    @abstractmethod
    def page_count(self) -> int:
        pass

    @abstractmethod
    async def page_size(self, page_number: int) -> PageSize:
        """
        Natural (scale 1.0) size of a page.

        :param page_number: 1-based page index.
        """
        pass
