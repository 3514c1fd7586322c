"""Log fields and contexts, levels, log ids, rotating writers and JSON loggers."""