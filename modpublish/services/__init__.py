"""服务层: 外部协作者的具体实现（归档、go 工具链、制品库、本地模块缓存）"""
