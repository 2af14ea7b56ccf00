"""Client-side onboarding core: form interpreter, prefill and document uploads."""
