"""Swim age-ratio modeling.

- Normalize swim times to each sex's mean time at age 35 (the Ratio)
- Fit a neural net, a polynomial and a spline regression of Ratio on age
- Blend them with a non-negative stacked ensemble
- Bootstrap the whole pipeline for percentile bands
"""
