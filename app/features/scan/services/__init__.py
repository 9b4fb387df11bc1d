"""
Scan Services

Organized by responsibility:

1. scanners/ - One module per engine, each turning raw engine output into a report
   - browser.py: Headless Chrome session shared by the rule engine
   - accessibility.py: axe-core run, normalization, summary score
   - performance.py: Lighthouse subprocess, category scores, timing and resources
   - wcag.py: Enrichment step for enhanced scans (WCAG mapping, priority score)

2. orchestration/ - Fan-out and read-side aggregation
   - orchestrator.py: Runs the enabled scanners concurrently and folds the results into one record
   - history.py: Per-day reconciliation and date comparison

3. storage/ - Persistence
   - record_store.py: Insert-only writes, reads normalized across record layouts
"""
