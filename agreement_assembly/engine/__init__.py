"""Engine — normalizer, token resolver, exhibit selector, template renderer, merge engine."""
