"""
lambdoku
--------

AWS Lambda 함수의 배포 메타데이터(환경변수, 버전, 코드 전파)를
aws CLI 를 통해 관리하는 CLI 패키지.
"""

__all__ = [
    "aws_lambda",
    "config",
    "downstream",
    "operations",
]
