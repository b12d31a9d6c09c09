from typing import Annotated
from fastapi import Depends
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext

current_user_dependency = Annotated[AuthContext, Depends(AuthDependencies.get_auth_context)]

any_role_dependency = Annotated[AuthContext, Depends(AuthDependencies.require_any_role())]

staff_dependency = Annotated[AuthContext, Depends(AuthDependencies.require_staff())]

admin_dependency = Annotated[AuthContext, Depends(AuthDependencies.require_role(["admin"]))]

viewer_dependency = Annotated[
    AuthContext, Depends(AuthDependencies.require_role(["admin", "accountant", "client"], query_token=True))
]
