"""
Snowball Visibility

Super User brand visibility analysis:
1. Extracts business categories and competitors for a domain with Claude
2. Generates search prompts and collects AI answers to them
3. Counts brand mentions and computes AI share of voice
4. Exports the reconciled results as JSON view-models and a PDF report
"""

__version__ = "1.0.0"
