"""asmgraph: class relationship extraction for .NET assemblies."""

__version__ = "0.1.0"
