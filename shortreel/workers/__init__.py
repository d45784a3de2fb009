# Background workers
