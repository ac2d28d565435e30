"""
HOG + 线性 SVM 检测器 - 训练脚本

从 ``data_dir/{train,val,test}/{positive,negative}`` 中的窗口图像提取特征，
训练 SVM，在各分割上评估，并保存模型、特征配置、训练结果与图表。
"""

import argparse
import time
from datetime import datetime
from pathlib import Path

from svm_detector.features import FeatureExtractor, get_default_parameters_for
from svm_detector.models import LinearClassifier
from svm_detector.utils.config import (
    DEFAULT_SAVE_PATHS,
    KERNEL_CHOICES,
    DetectorTrainConfig,
    HOGConfig,
    SVMConfig,
)
from svm_detector.utils.logger import Logger
from svm_detector.utils.ml_training import run_detector_training


def _default_save_path(timestamp=None):
    """生成带时间戳的默认保存路径

    返回:
        str: 保存路径，格式为 runs/hog_svm_{timestamp}/model.joblib
    """
    if timestamp is None:
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    default_path = Path(DEFAULT_SAVE_PATHS["svm"])
    run_dir = default_path.parent.with_name("{}_{}".format(default_path.parent.name, timestamp))
    return str(run_dir / default_path.name)


def _parse_gamma(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


def build_parser():
    """构建训练参数解析器。"""
    parser = argparse.ArgumentParser(
        description="HOG + SVM 检测器训练脚本",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    data_defaults = DetectorTrainConfig()
    svm_defaults = SVMConfig()

    # 数据参数
    parser.add_argument('--data-dir', type=str, default=data_defaults.data_dir, help='数据集根目录')
    parser.add_argument('--train-dirname', type=str, default=data_defaults.train_dirname, help='训练集名称')
    parser.add_argument('--val-dirname', type=str, default=data_defaults.val_dirname, help='验证集名称')
    parser.add_argument('--test-dirname', type=str, default=data_defaults.test_dirname, help='测试集名称')
    parser.add_argument('--positive-dirname', type=str, default=data_defaults.positive_dirname, help='正样本子目录名')
    parser.add_argument('--negative-dirname', type=str, default=data_defaults.negative_dirname, help='负样本子目录名')
    parser.add_argument('--cache-dir', type=str, default=None, help='特征缓存目录（可选）')
    parser.add_argument('--n-jobs', type=int, default=data_defaults.n_jobs, help='特征提取线程数')
    parser.add_argument('--seed', type=int, default=data_defaults.seed, help='随机种子')

    # 特征参数
    hog_defaults = get_default_parameters_for('hog')
    parser.add_argument('--feature-type', type=str, default='hog', help='特征类型')
    parser.add_argument('--hog-bins', type=int, default=hog_defaults['n_angular_bins'], help='HOG 方向 bin 数量')
    parser.add_argument('--hog-cell-size', type=int, default=hog_defaults['cell_size'], help='HOG cell 边长（像素）')
    parser.add_argument('--hog-signed', action='store_true', help='使用 0-360° 有符号梯度方向')
    parser.add_argument('--scale-features', action='store_true', help='按通道标准化描述子（在训练集上拟合）')

    # SVM 参数
    parser.add_argument('--kernel', type=str, choices=KERNEL_CHOICES, default=svm_defaults.kernel, help='SVM 核函数')
    parser.add_argument('--svm-c', type=float, default=svm_defaults.C, help='SVM 正则化参数 C')
    parser.add_argument('--svm-gamma', type=str, default=svm_defaults.gamma, help='非线性核的 gamma')
    parser.add_argument('--svm-tol', type=float, default=svm_defaults.tol, help='求解器停止容差')
    parser.add_argument('--svm-max-iter', type=int, default=svm_defaults.max_iter, help='求解器最大迭代次数（-1 表示不限制）')

    # 通用控制参数
    parser.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="日志级别")
    parser.add_argument("--save-path", type=str, default=None, help="模型保存路径（默认带时间戳）")
    return parser


def build_extractor(args):
    params = {}
    if args.feature_type == 'hog':
        params = HOGConfig(
            n_angular_bins=args.hog_bins,
            unsigned_gradients=not args.hog_signed,
            cell_size=args.hog_cell_size,
        ).to_dict()
    return FeatureExtractor.create(args.feature_type, params)


def build_svm_params(args):
    return SVMConfig(
        kernel=args.kernel,
        C=args.svm_c,
        gamma=_parse_gamma(args.svm_gamma),
        tol=args.svm_tol,
        max_iter=args.svm_max_iter,
    )


def main(argv=None):
    """标准入口：从命令行运行并执行训练流程。"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.save_path:
        args.save_path = _default_save_path()
    run_dir = Path(args.save_path).parent
    run_dir.mkdir(parents=True, exist_ok=True)

    logger = Logger(
        name="hog_svm",
        log_dir=str(run_dir),
        filename="hog_svm.log",
        level=args.log_level,
    )

    start_time = time.time()
    try:
        extractor = build_extractor(args)
        svm_params = build_svm_params(args)
        logger.block("开始训练", [
            "data: {}".format(args.data_dir),
            "feature: {}".format(extractor),
            "kernel: {} | C={}".format(svm_params.kernel, svm_params.C),
            "seed: {}".format(args.seed),
            "n_jobs: {}".format(args.n_jobs),
            "run_dir: {}".format(run_dir),
        ])

        classifier, results = run_detector_training(
            args=args,
            classifier_class=LinearClassifier,
            extractor=extractor,
            svm_params=svm_params,
            logger=logger,
        )

        best_acc = None
        for split in ("val", "test"):
            if results.get(split) and results[split].get("accuracy") is not None:
                best_acc = results[split]["accuracy"]
                break
        logger.block("训练完成", [
            "耗时: {}".format(Logger.format_duration(time.time() - start_time)),
            "准确率: {:.4f}".format(best_acc) if best_acc is not None else "准确率: -",
            "模型保存: {}".format(args.save_path),
        ])
        return classifier, results
    except Exception as e:
        logger.exception("训练过程中发生错误: %s", e)
        raise


if __name__ == "__main__":
    main()
