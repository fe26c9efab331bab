"""Command line tools: batch prefetch and the rkbx_link emulator."""
