"""Migration sources: file name parsing, the driver interface and registry, and concrete drivers."""