"""
SID 协议层 (Protocol Layer)

- protocols.base: 协议策略抽象基类。
- protocols.sid: SID 线上格式的编解码与认证状态机。
"""
