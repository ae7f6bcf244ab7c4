"""
Training LMS module.

- Global catalogue of SB 553 modules (video + quiz), seeded idempotently
- Per-employee progress with sequential unlocking and video-before-quiz gating
- Completion of the full path writes an LC 6401.9(e) training record
"""
