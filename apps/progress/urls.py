from django.urls import path
from .views import (
    ProgressCreateView, ProjectProgressView, MyProgressView, ProgressDetailView,
    ProgressAcknowledgeView, ProgressCommentView, ResolveIssueView
)

urlpatterns = [
    path('', ProgressCreateView.as_view(), name='progress_create'),
    path('project/<int:project_id>/', ProjectProgressView.as_view(), name='progress_project'),
    path('my-updates/', MyProgressView.as_view(), name='progress_my_updates'),
    path('<int:pk>/', ProgressDetailView.as_view(), name='progress_detail'),
    path('<int:pk>/acknowledge/', ProgressAcknowledgeView.as_view(), name='progress_acknowledge'),
    path('<int:pk>/comment/', ProgressCommentView.as_view(), name='progress_comment'),
    path('<int:pk>/issues/<int:index>/resolve/', ResolveIssueView.as_view(), name='progress_resolve_issue'),
]
