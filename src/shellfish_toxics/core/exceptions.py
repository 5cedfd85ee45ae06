class ToxicsError(Exception):
    """Base class for shellfish toxics pipeline errors."""

class SchemaError(ToxicsError):
    pass

class ReferenceDataError(ToxicsError):
    pass

class UnitConversionError(ToxicsError):
    pass

class CongenerCompletenessError(ToxicsError):
    """Raised when expected PCB congeners have no resolved record."""
    pass

class MetadataMismatchError(ToxicsError):
    """Raised when sample metadata differs within an aggregation group."""
    pass
